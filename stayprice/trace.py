"""
trace.py

Per-run narration buffers. One TraceCollector is created for each run and
returned with its result; nothing is shared between runs.

 - validation: structural narration of every RatePlan (verbosity level 2)
 - matching:   per decision narration of the match engine (verbosity level 1)
"""


class TraceCollector:
    def __init__(self):
        self.validation = []
        self.matching = []

    def validate(self, line: str):
        self.validation.append(line)

    def validate_all(self, lines):
        self.validation.extend(lines)

    def match(self, line: str):
        self.matching.append(line)

    def validation_text(self) -> str:
        return "".join(line + "\n" for line in self.validation)

    def matching_text(self) -> str:
        return "".join(line + "\n" for line in self.matching)

    def render(self, verbosity: int) -> str:
        """
        Text for a given verbosity: 0 nothing, 1 matching, 2 validation + matching.
        """
        text = ""
        if verbosity >= 2:
            text += self.validation_text()
        if verbosity >= 1:
            text += self.matching_text()
        return text


def amount_text(value: float) -> str:
    """
    Shortest text for an amount: 100.0 -> '100', 12.5 -> '12.5'.
    """
    if value == int(value):
        return str(int(value))
    return repr(value)
