# -*- coding: utf-8 -*-
"""
Split prettified names and argument lists into tokens for colorized output.

  tokenize_name('a.b<d,e>') -> a . b < d , e >
  tokenize_arguments('ref A.B, int') -> [ref] ' ' A . B ', ' int
"""
from typing import Callable, Iterator, NamedTuple

NAME_SEPARATORS = ".<>,"
REF_MODIFIER = "ref"


class Token(NamedTuple):
    text: str
    is_separator: bool
    is_modifier: bool = False


class TokenStream:
    """A lazy token sequence; every iteration rescans the input from the start."""

    def __init__(self, scan: Callable[..., Iterator[Token]], *args):
        self._scan = scan
        self._args = args

    def __iter__(self) -> Iterator[Token]:
        return self._scan(*self._args)


def _scan_name(name: str, separators: str) -> Iterator[Token]:
    start = 0
    for i, ch in enumerate(name):
        if ch in separators:
            if i > start:
                yield Token(name[start:i], False)
            yield Token(ch, True)
            start = i + 1
    if start < len(name):
        yield Token(name[start:], False)


def _scan_arguments(arguments: str, separators: str) -> Iterator[Token]:
    for n, item in enumerate(arguments.split(",")):
        if n > 0:
            yield Token(", ", True)
        item = item.strip(" ")
        modifier, space, rest = item.partition(" ")
        if space and modifier == REF_MODIFIER:
            # 'ref A.B.C'
            yield Token(modifier, False, True)
            yield Token(" ", True)
            item = rest.strip(" ")
        yield from _scan_name(item, separators)


def tokenize_name(name: str, separators: str = NAME_SEPARATORS) -> TokenStream:
    return TokenStream(_scan_name, name, separators)


def tokenize_arguments(arguments: str, separators: str = NAME_SEPARATORS) -> TokenStream:
    """Tokenize a prettified argument list ('ref TypeName' or 'TypeName' items)."""
    if not arguments:
        return TokenStream(iter, ())
    return TokenStream(_scan_arguments, arguments, separators)
