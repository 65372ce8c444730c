"""LTSV tokenizer: one line of tab separated ``label:value`` pairs."""


def parse_ltsv(line: str) -> dict:
    # Label runs up to the first ':' of a field, the value up to the next tab.
    # Fields without a colon are dropped; a repeated label keeps the last value.
    fields: dict = {}
    for chunk in line.rstrip('\r\n').split('\t'):
        label, sep, value = chunk.partition(':')
        if sep:
            fields[label] = value
    return fields
