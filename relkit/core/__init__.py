"""Core types shared by the pipeline and the CLI."""

from .config import ConfigError, ProjectConfig, load_project_config
from .errors import ErrorCode
from .result import Err, Ok, Result
from .terms import Atom, Charlist, TermSyntaxError, consult, format_term

__all__ = [
    # config
    "ConfigError",
    "ProjectConfig",
    "load_project_config",
    # errors
    "ErrorCode",
    # result
    "Err",
    "Ok",
    "Result",
    # terms
    "Atom",
    "Charlist",
    "TermSyntaxError",
    "consult",
    "format_term",
]
