"""
grammar_handling.py

Lark grammars for the literal formats that show up in rate plan documents
and on the command line:
 - date:       ISO calendar date, YYYY-MM-DD
 - duration:   ISO day duration, P<n>D (advance booking offsets)
 - occupancy:  CODE:MIN:STD:MAX[:MAXCHILD] (compact CLI occupancy spec)
"""
from lark import Lark, Transformer, exceptions as lark_exceptions

LITERAL_GRAMMAR = r"""
    date: YEAR "-" TWO_DIGITS "-" TWO_DIGITS
    duration: "P" NUMBER "D"
    occupancy: CODE ":" NUMBER ":" NUMBER ":" NUMBER (":" max_child)?
    max_child: NUMBER | UNDEFINED

    YEAR: /\d{4}/
    TWO_DIGITS: /\d{2}/
    NUMBER: /\d+/
    UNDEFINED: "undefined"
    CODE: /[^:\s]+/
"""


class LiteralTransformer(Transformer):
    def date(self, items):
        year, month, day = items
        return int(year), int(month), int(day)

    def duration(self, items):
        return int(items[0])

    def max_child(self, items):
        token = items[0]
        if token.type == "UNDEFINED":
            return None
        return int(token)

    def occupancy(self, items):
        code = str(items[0])
        min_occ, std_occ, max_occ = (int(t) for t in items[1:4])
        max_child = items[4] if len(items) > 4 else None
        return code, min_occ, std_occ, max_occ, max_child


def build_parser(grammar_text: str, start):
    """
    Build and return a Lark parser from a given grammar string.
    """
    return Lark(grammar_text, start=start, parser="lalr")


_PARSER = build_parser(LITERAL_GRAMMAR, start=["date", "duration", "occupancy"])
_TRANSFORMER = LiteralTransformer()


def parse_literal(text: str, start: str):
    """
    Parse 'text' as one literal of kind 'start' and return its transformed value,
    or None if it does not match the grammar.
    """
    if not isinstance(text, str):
        return None
    try:
        tree = _PARSER.parse(text, start=start)
    except lark_exceptions.LarkError:
        return None
    return _TRANSFORMER.transform(tree)


def check_sample_against_grammar(sample_string: str, start: str) -> bool:
    """
    Returns True if 'sample_string' parses as a literal of kind 'start'.
    """
    return parse_literal(sample_string, start) is not None
