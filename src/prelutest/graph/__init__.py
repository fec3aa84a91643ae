"""Graph synthesis and TFLite serialization."""
from .builder import MODEL_DESCRIPTION, BuiltGraph, GraphBuilder
from .encoder import DecodeStep, EncodedWeights, WeightEncoder
from .schema import BuiltinOperator, DimensionType, GraphContext, ModelDef, TensorType
from .validate import assert_well_formed, check_graph
from .writer import serialize_model

__all__ = [
    "MODEL_DESCRIPTION",
    "BuiltGraph",
    "BuiltinOperator",
    "DecodeStep",
    "DimensionType",
    "EncodedWeights",
    "GraphBuilder",
    "GraphContext",
    "ModelDef",
    "TensorType",
    "WeightEncoder",
    "assert_well_formed",
    "check_graph",
    "serialize_model",
]
