from .config import add_logging_arguments, setup_logging, setup_logging_from_args

__all__: list[str] = ["add_logging_arguments", "setup_logging", "setup_logging_from_args"]
