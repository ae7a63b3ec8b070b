"""In-memory codebase index implementing the analysis collaborators"""

from .codebase_index import CodebaseIndex, OPERATOR_METHOD_NAMES, simple_type_name

__all__ = ["CodebaseIndex", "OPERATOR_METHOD_NAMES", "simple_type_name"]
