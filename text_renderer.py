# -*- coding: utf-8 -*-
"""
Bordered text rendering of the parallel stacks view.

Every line is a list of OutputFragments; the fragment kind decides the
color, the renderer only decides borders and line wrapping.
"""
from dataclasses import dataclass
from enum import Enum
from typing import List, TextIO

from frame_demangler import StackFrame
from frame_tokenizer import NAME_SEPARATORS, tokenize_arguments, tokenize_name
from parallel_threads import GroupKind, ParallelThreadGroup, ParallelThreads

MAX_WIDTH = 100
BORDER_WIDTH = 2  # '| '


class FragmentKind(Enum):
    BORDER = "border"
    HEADER = "header"
    EXCEPTION_TYPE = "exception_type"
    EXCEPTION_MESSAGE = "exception_message"
    NAMESPACE = "namespace"
    TYPE_NAME = "type_name"
    METHOD_NAME = "method_name"
    SEPARATOR = "separator"
    TEXT = "text"
    ARGUMENT = "argument"
    ARGUMENT_MODIFIER = "argument_modifier"
    WARNING = "warning"


@dataclass(frozen=True)
class OutputFragment:
    kind: FragmentKind
    text: str


ANSI_CODES = {
    FragmentKind.BORDER: "2",
    FragmentKind.HEADER: "1;34",
    FragmentKind.EXCEPTION_TYPE: "1;31",
    FragmentKind.EXCEPTION_MESSAGE: "31",
    FragmentKind.NAMESPACE: "36",
    FragmentKind.TYPE_NAME: "36",
    FragmentKind.METHOD_NAME: "1;33",
    FragmentKind.ARGUMENT: "32",
    FragmentKind.ARGUMENT_MODIFIER: "1;35",
    FragmentKind.WARNING: "1;33",
}


def ansi(s, code, enabled=True):
    if not enabled:
        return s
    return f"\033[{code}m{s}\033[0m"


def name_fragments(name: str, kind: FragmentKind) -> List[OutputFragment]:
    return [OutputFragment(FragmentKind.SEPARATOR if t.is_separator else kind, t.text)
            for t in tokenize_name(name, NAME_SEPARATORS)]


def argument_fragments(arguments: str) -> List[OutputFragment]:
    out = []
    for t in tokenize_arguments(arguments, NAME_SEPARATORS):
        if t.is_separator:
            kind = FragmentKind.SEPARATOR
        elif t.is_modifier:
            kind = FragmentKind.ARGUMENT_MODIFIER
        else:
            kind = FragmentKind.ARGUMENT
        out.append(OutputFragment(kind, t.text))
    return out


def frame_fragments(frame: StackFrame) -> List[OutputFragment]:
    """'A.B.Run(ref int)' -> A . B . Run ( [ref] ' ' int )"""
    if not frame.type_name and not frame.method:
        # frames that could not be demangled keep their raw signature
        return [OutputFragment(FragmentKind.TEXT, frame.signature)]
    out = name_fragments(frame.type_name, FragmentKind.TYPE_NAME)
    if frame.type_name and frame.method:
        out.append(OutputFragment(FragmentKind.SEPARATOR, "."))
    out.extend(name_fragments(frame.method, FragmentKind.METHOD_NAME))
    out.append(OutputFragment(FragmentKind.SEPARATOR, "("))
    out.extend(argument_fragments(frame.arguments))
    out.append(OutputFragment(FragmentKind.SEPARATOR, ")"))
    return out


class TextRenderer:
    def __init__(self, out: TextIO, color: bool = True, render_raw_stack_frames: bool = False,
                 max_width: int = MAX_WIDTH):
        self.out = out
        self.color = color
        self.render_raw_stack_frames = render_raw_stack_frames
        self.max_width = max_width
        self._separator_line = "-" * max_width

    # ---- primitives ----

    def write_fragment(self, fragment: OutputFragment) -> int:
        code = ANSI_CODES.get(fragment.kind)
        text = ansi(fragment.text, code, self.color) if code else fragment.text
        self.out.write(text)
        return len(fragment.text)

    def new_line(self):
        self.out.write("\n")

    def line_separator(self):
        self.write_fragment(OutputFragment(FragmentKind.BORDER, f"|{self._separator_line}|"))
        self.new_line()

    def _closing_border(self, width: int):
        pad = self.max_width - width if width < self.max_width else 0
        self.write_fragment(OutputFragment(FragmentKind.BORDER, f"{' ' * pad} |"))
        self.new_line()

    def line(self, fragments: List[OutputFragment]):
        """Render one bordered line, wrapping at fragment boundaries."""
        width = self.write_fragment(OutputFragment(FragmentKind.BORDER, "| "))
        for fragment in fragments:
            # an over-wide fragment right after a border is still written as is
            if width + len(fragment.text) + BORDER_WIDTH > self.max_width and width != BORDER_WIDTH:
                self._closing_border(width)
                width = self.write_fragment(OutputFragment(FragmentKind.BORDER, "|    "))
            width += self.write_fragment(fragment)
        self._closing_border(width)

    def centered(self, text: str, kind: FragmentKind = FragmentKind.TEXT):
        prefix = max((self.max_width - len(text) - BORDER_WIDTH + 1) // 2, 0)
        suffix = max(self.max_width - len(text) - prefix - BORDER_WIDTH, 0)
        # padded to the full width, so never wrapped
        width = self.write_fragment(OutputFragment(FragmentKind.BORDER, "| "))
        width += self.write_fragment(OutputFragment(FragmentKind.TEXT, " " * prefix))
        width += self.write_fragment(OutputFragment(kind, text))
        width += self.write_fragment(OutputFragment(FragmentKind.TEXT, " " * suffix))
        self._closing_border(width)

    # ---- parallel stacks ----

    def render(self, threads: ParallelThreads, top: int = None):
        self.line_separator()
        self.centered("Parallel Threads", FragmentKind.HEADER)
        self.line_separator()
        self.line([
            OutputFragment(FragmentKind.TEXT, f"Thread count: {threads.thread_count}"),
            OutputFragment(FragmentKind.SEPARATOR, ", "),
            OutputFragment(FragmentKind.TEXT, f"Unique stack traces: {threads.unique_stacks}"),
        ])
        self.line_separator()

        groups = threads.groups if top is None else threads.groups[:top]
        for group in groups:
            self.render_group(group)

    def render_group(self, group: ParallelThreadGroup):
        self.centered(group.header, FragmentKind.HEADER)
        self.line_separator()
        self._extra_thread_info(group)
        for frame in group.thread_info.stack_frames:
            self.line(frame_fragments(frame))

        if self.render_raw_stack_frames:
            self.line_separator()
            self.line([OutputFragment(FragmentKind.TEXT, "Raw stack frames:")])
            for raw in group.thread_info.raw_stack_frames:
                self.line(name_fragments(raw, FragmentKind.TYPE_NAME))

        self.line_separator()

    def _extra_thread_info(self, group: ParallelThreadGroup):
        fragments = []
        info = group.thread_info
        exception = info.exception
        if group.kind is GroupKind.SINGLE and exception is not None:
            fragments.append(OutputFragment(FragmentKind.EXCEPTION_TYPE, exception.type_name))
            if exception.message is not None:
                fragments.append(OutputFragment(FragmentKind.SEPARATOR, ": "))
                fragments.append(OutputFragment(FragmentKind.EXCEPTION_MESSAGE, exception.message))

        if not info.lock_count.is_empty:
            if fragments:
                fragments.append(OutputFragment(FragmentKind.SEPARATOR, ", "))
            fragments.append(OutputFragment(FragmentKind.TYPE_NAME, "LockCount"))
            fragments.append(OutputFragment(FragmentKind.SEPARATOR, ": "))
            fragments.append(OutputFragment(FragmentKind.METHOD_NAME, str(info.lock_count)))

        if fragments:
            self.line(fragments)
            self.line_separator()
