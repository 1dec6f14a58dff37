from .extractor import LLMExtractor, strip_code_fences

__all__ = ["LLMExtractor", "strip_code_fences"]
