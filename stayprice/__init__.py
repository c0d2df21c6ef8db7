"""
stayprice package

Modules:
 - run.py: CLI entry point for pricing a stay, validating a rate plans document and listing interpreters
 - _types.py: shared enumerations and atomic classes (e.g., AtomicRangeInt)
 - errors.py: error taxonomy (DateError, SchemaError, InputError) and MatchExclusion
 - trace.py: per-run trace collector
 - interpreter/: rate plan section interpreters, registry & plan extraction
 - engine/: stay parameters, the match engine and its result
 - utilities/: date arithmetic, Lark literal grammars, document tree decoding
"""
