"""
interpreter package

Turns the generic tree of a rate plans document into validated, immutable
RatePlan sub-models:
 - constraints.py: declarative attribute tables and shared shapes
 - rate_interpreter.py, rule_interpreter.py, supplement_interpreter.py,
   offer_interpreter.py: one interpreter per RatePlan section
 - registry.py: section interpreters keyed by name
 - plan_extractor.py: RatePlan lookup and entity assembly
"""
