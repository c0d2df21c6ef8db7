"""
registry.py

Keeps a dictionary of the RatePlan section interpreters keyed by their string name.
Each entry is a pair (interpret, describe): interpret(plan_node) builds the
validated sub-model, describe(model) returns its validation narration lines.
"""

INTERPRETERS = {}


def register_interpreter(name: str, interpret, describe):
    """
    Register an interpreter under a given name (e.g. 'rates').
    """
    INTERPRETERS[name] = (interpret, describe)


def get_interpreter(name: str):
    """
    Retrieve the (interpret, describe) pair by name, or raise an error if not found.
    """
    if name not in INTERPRETERS:
        raise ValueError(f"Interpreter '{name}' not registered.")
    return INTERPRETERS[name]
