from .turn_service import DialogueService, create_extractor, to_turn_result

__all__ = ["DialogueService", "create_extractor", "to_turn_result"]
