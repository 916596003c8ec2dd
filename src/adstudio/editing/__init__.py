from adstudio.editing.propagation import PropagationEngine, PropagationResult

__all__ = ["PropagationEngine", "PropagationResult"]
