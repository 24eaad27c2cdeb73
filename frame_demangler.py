# -*- coding: utf-8 -*-
"""
Managed stack frame demangler.

Turns a raw runtime signature such as

  System.Runtime.CompilerServices.AsyncMethodBuilderCore.Start
    [[System.Threading.Tasks.Parallel+<>c__50`1+<<ForEachAsync>b__50_0>d
        [[System.Int32, System.Private.CoreLib]], System.Threading.Tasks.Parallel]]
    (<<ForEachAsync>b__50_0>d<Int32> ByRef)

into a display form:

  System.Runtime.CompilerServices.AsyncMethodBuilderCore.Start
    <System.Threading.Tasks.Parallel.ForEachAsync.AnonymousMethod__50_0.StateMachine<int>>
    (ref ForEachAsync.AnonymousMethod__50_0.StateMachine<Int32>)

- '[[' / ']]' delimit a generic argument list, '[' / ']' a single argument
  of the form 'TypeName, AssemblyName'.
- Compiler generated names follow '<' OptionalName '>' Kind '__' Suffix:
  'c' closure/display class, 'b' lambda, 'd' async state machine,
  'g' local function (with '|' as a field separator).
- Nothing here validates the input; malformed signatures degrade, never raise.
"""
import re
import sys
from dataclasses import dataclass
from typing import Tuple

from predefined_types import try_simplify

ARITY_RE = re.compile(r"`\d+")
GENERATED_DOT_RE = re.compile(r"\.<+")

CLOSURE_PREFIX = "<>c"
BY_REF = "ByRef"


@dataclass(frozen=True)
class StackFrame:
    type_name: str
    method: str
    arguments: str
    signature: str

    def __str__(self) -> str:
        return self.signature


def _debug(msg: str, enabled: bool):
    if enabled:
        print(f"[debug] {msg}", file=sys.stderr)


def demangle(raw_signature: str, debug: bool = False) -> StackFrame:
    """Demangle one raw frame signature.

    A signature without an argument list is returned verbatim as the
    frame's signature with empty type, method and arguments.
    """
    split = split_signature(raw_signature)
    if split is None:
        _debug(f"no argument list in {raw_signature!r}", debug)
        return StackFrame("", "", "", raw_signature)

    body, raw_args = split
    pretty = prettify_signature(body, debug=debug)
    type_name, method = split_full_name(pretty)
    arguments = prettify_arguments(raw_args)
    return StackFrame(type_name, method, arguments, f"{pretty}({arguments})")


def split_signature(raw_signature: str):
    """'A.B(int, object)' -> ('A.B', 'int, object'); None if there is no '('."""
    i = raw_signature.rfind("(")
    if i == -1:
        return None
    args = raw_signature[i + 1:]
    if args.endswith(")"):
        args = args[:-1]
    return raw_signature[:i], args


def split_full_name(name: str) -> Tuple[str, str]:
    """Split at the last '.' outside of '<...>'.

      'A<C.D>.Foo<X.Y,Z.W>' -> ('A<C.D>', 'Foo<X.Y,Z.W>')
      'Foo'                 -> ('', 'Foo')
    """
    last_dot = -1
    depth = 0
    for i, ch in enumerate(name):
        if ch == "." and depth == 0:
            last_dot = i
        elif ch == "<":
            depth += 1
        elif ch == ">":
            depth -= 1
    if last_dot == -1:
        return "", name
    return name[:last_dot], name[last_dot + 1:]


def _next_bracket_run(s: str, start: int):
    """Find the next run of consecutive '[' or ']' at or after start: (index, length, bracket)."""
    n = len(s)
    i = start
    while i < n and s[i] not in "[]":
        i += 1
    if i == n:
        return None
    bracket = s[i]
    j = i
    while j < n and s[j] == bracket:
        j += 1
    return i, j - i, bracket


def prettify_signature(signature: str, debug: bool = False) -> str:
    """Resolve generic instantiation markup and prettify every type segment.

      'Ns.Box`1[[System.Int32, System.Private.CoreLib]].Get' -> 'Ns.Box<int>.Get'
    """
    out = []
    pos = 0
    depth = 0

    while True:
        run = _next_bracket_run(signature, pos)
        if run is None:
            # tail: whatever follows the last bracket run is 'Type.Method' or '.Method'
            type_name, method = split_full_name(signature[pos:])
            out.append(prettify_type_name(type_name))
            method = prettify_method_name(method)
            if method:
                if any(out):
                    out.append(".")
                out.append(method)
            break

        index, length, bracket = run
        segment = signature[pos:index]
        pairs = length // 2

        if bracket == "[":
            out.append(prettify_type_name(segment))
            out.append("<" * pairs)
            depth += pairs
        else:
            comma = segment.find(",")
            if comma == -1:
                _debug(f"generic argument without an assembly name: {segment!r} in {signature!r}", debug)
            else:
                segment = segment[:comma]
            out.append(prettify_type_name(segment))
            out.append(">" * pairs)
            depth -= pairs

        pos = index + length

    if depth != 0:
        _debug(f"unbalanced generic brackets in {signature!r}", debug)
    return "".join(out)


def _prettify_generated_name(section: str) -> str:
    # leading '<' only says "compiler generated"
    section = section.lstrip("<")
    # local functions: '<Outer>g__Inner|3_0'; '|' before the markers
    section = section.replace("|", "")
    section = section.replace(">b", ".AnonymousMethod")
    section = section.replace(">d", ".StateMachine")
    section = section.replace(">g__", ".")
    return GENERATED_DOT_RE.sub(".", section)


def prettify_type_name(type_name: str) -> str:
    """Normalize a raw (possibly compiler generated) type name.

      'Ns.Program+<RunAsync>d__1'            -> 'Ns.Program.RunAsync.StateMachine__1'
      'Ns.Program+<>c+<<RunAsync>b__1_0>d'   -> 'Ns.Program.RunAsync.AnonymousMethod__1_0.StateMachine'
      'Ns.P+<>c__DisplayClass1_0.<Run>b__0'  -> 'Ns.P.Run.AnonymousMethod__0'
      'System.Int32'                         -> 'int'
    """
    simplified = try_simplify(type_name)
    if simplified is not None:
        return simplified
    if "`" in type_name:
        type_name = ARITY_RE.sub("", type_name)

    sections = []
    for section in type_name.split("+"):
        if section.startswith(CLOSURE_PREFIX):
            # '<>c__DisplayClass1_0+<<Run>b__0>d' keeps 'Run' in the next section,
            # '<>c__DisplayClass1_0.<Run>b__0' keeps it after '.<'
            i = section.find(".<")
            if i == -1:
                continue
            section = section[i + 2:]
        sections.append(_prettify_generated_name(section))

    result = ".".join(sections)
    # 'System.Int32+<>c' only becomes a predefined name once the closure is gone
    return try_simplify(result) or result


def prettify_method_name(method: str) -> str:
    return _prettify_generated_name(method)


def _prettify_argument(argument: str) -> str:
    words = argument.split()
    if not words:
        return ""
    by_ref = BY_REF in words
    type_words = [w for w in words if w != BY_REF]
    type_name = prettify_type_name(type_words[0]) if type_words else ""
    return f"ref {type_name}" if by_ref else type_name


def prettify_arguments(raw_args: str) -> str:
    """'Int32, System.Object' -> 'int, object'; 'System.Int32 ByRef' -> 'ref int'."""
    if not raw_args.strip():
        return ""
    return ", ".join(_prettify_argument(a.strip(" ")) for a in raw_args.split(","))
