from eco_compliance.presentation.exceptions.handlers import register_exception_handlers

__all__ = ["register_exception_handlers"]
