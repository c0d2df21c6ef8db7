"""
stayprice.utilities package

 - dates.py: calendar arithmetic on ISO dates
 - grammar_handling.py: Lark grammars for dates, durations and occupancy specs
 - tree.py: the generic attributed tree and its XML / JSON decoders
"""
