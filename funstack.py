#!/usr/bin/env python3
"""
funstack.py - a virtual machine for a tiny stack language.

A program is a list of function definitions sharing one data stack:

    fun square  dup *  ret
    fun main    7 square print  ret

Architecture:
  - Tokenizer: source text -> (kind, value, line, col) tokens
  - Parser: tokens -> Program, a read-only table of name -> instruction tuple
  - Machine: explicit frame stack over a single shared data stack
  - Loops are trees: a LOOP instruction owns its body, no jump addresses

Instruction set (Instruction.op, Instruction.arg):
  PUSH   n       push integer n
  DUP            duplicate TOS
  POP            drop TOS
  SWAP           exchange the top two
  OVER           push a copy of the second item
  ADD SUB MUL    pop a, pop b, push (b op a)
  DIV            same, truncating toward zero
  CALL   name    run function name, then resume the caller
  PRINT          pop TOS onto the output
  LOOP   body    peek TOS; run body while it is nonzero
"""

import argparse
import sys
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType
from typing import NamedTuple, Optional


KEYWORDS  = ('fun', 'ret', 'while', 'end')
BUILTINS  = {'dup': 'DUP', 'pop': 'POP', 'swap': 'SWAP', 'over': 'OVER', 'print': 'PRINT'}
OPERATORS = {'+': 'ADD', '-': 'SUB', '*': 'MUL', '/': 'DIV', '.': 'PRINT'}

INT_MIN = -2 ** 63
INT_MAX = 2 ** 63 - 1

DEFAULT_ENTRY = 'main'
MAX_DEPTH     = 1000    # active calls + active loop bodies; None disables
MAX_STEPS     = None    # dispatched instructions per run; None disables

NOT_STARTED = 'NotStarted'
RUNNING     = 'Running'
COMPLETED   = 'Completed'
FAILED      = 'Failed'


class FunstackError(Exception):
    def __init__(self, kind: str, message: str, line: int = 0, col: int = 0):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.line = line
        self.col = col

    def __str__(self):
        if self.line:
            return f'{self.kind} at line {self.line}, col {self.col}: {self.message}'
        return f'{self.kind}: {self.message}'


class LexError(FunstackError):
    pass


class ParseError(FunstackError):
    def __init__(self, kind, message, line=0, col=0, incomplete=False):
        super().__init__(kind, message, line, col)
        self.incomplete = incomplete


class RunError(FunstackError):
    """Fatal to one run. `output` holds whatever was printed before the failure."""

    def __init__(self, kind, message, line=0, col=0, output=()):
        super().__init__(kind, message, line, col)
        self.output = list(output)


class Token(NamedTuple):
    kind:  str      # IDENT INT KEYWORD OP EOF
    value: object
    line:  int
    col:   int


class Instruction(NamedTuple):
    op:   str
    arg:  object = None
    line: int = 0
    col:  int = 0


# ── Tokenizer ─────────────────────────────────────────────────────────────────

_DIGITS = '0123456789'
_SEPARATORS = ' \t\r\n\f\v'


def _is_word_char(c: str) -> bool:
    return c.isascii() and (c.isalnum() or c == '_')


def _parse_int(text: str, line: int, col: int) -> int:
    value = int(text, 10)
    if not INT_MIN <= value <= INT_MAX:
        raise LexError('MalformedNumber', f'{text} does not fit in 64 bits', line, col)
    return value


def tokenize(src: str) -> list:
    tokens = []
    i, n = 0, len(src)
    line, bol = 1, 0        # bol: index where the current line begins
    while i < n:
        c = src[i]
        if c == '\n':
            line += 1
            i += 1
            bol = i
            continue
        if c in _SEPARATORS:
            i += 1
            continue
        col = i - bol + 1

        if c == '#':
            j = src.find('\n', i)
            i = j if j >= 0 else n
            continue

        if c in _DIGITS or (c == '-' and i + 1 < n and src[i+1] in _DIGITS):
            j = i + 1
            while j < n and src[j] in _DIGITS:
                j += 1
            if j < n and _is_word_char(src[j]):
                k = j
                while k < n and _is_word_char(src[k]):
                    k += 1
                raise LexError('MalformedNumber', f'bad number: {src[i:k]}', line, col)
            tokens.append(Token('INT', _parse_int(src[i:j], line, col), line, col))
            i = j
            continue

        if c == '-' and i + 1 < n and src[i+1] not in _SEPARATORS + '#':
            raise LexError('MalformedNumber', "'-' must be followed by digits or whitespace", line, col)

        if c in OPERATORS:
            tokens.append(Token('OP', c, line, col))
            i += 1
            continue

        if _is_word_char(c):
            j = i
            while j < n and _is_word_char(src[j]):
                j += 1
            word = src[i:j]
            tokens.append(Token('KEYWORD' if word in KEYWORDS else 'IDENT', word, line, col))
            i = j
            continue

        raise LexError('UnknownCharacter', f'unknown character {c!r}', line, col)

    tokens.append(Token('EOF', None, line, n - bol + 1))
    return tokens


# ── Program ───────────────────────────────────────────────────────────────────

class Program(Mapping):
    """Read-only function table: name -> tuple of Instructions.

    Built once by the parser and never mutated, so one Program can be shared
    by any number of concurrent runs.
    """
    __slots__ = ('_functions',)

    def __init__(self, functions=()):
        self._functions = MappingProxyType({name: tuple(code) for name, code in dict(functions).items()})

    def __getitem__(self, name):
        return self._functions[name]

    def __iter__(self):
        return iter(self._functions)

    def __len__(self):
        return len(self._functions)

    def __repr__(self):
        return f'Program({list(self._functions)})'


# ── Parser ────────────────────────────────────────────────────────────────────

def _describe(tok: Token) -> str:
    return 'end of input' if tok.kind == 'EOF' else repr(tok.value)


def parse(tokens) -> Program:
    tokens = list(tokens)
    if not tokens or tokens[-1].kind != 'EOF':
        last = tokens[-1] if tokens else Token('EOF', None, 1, 1)
        tokens.append(Token('EOF', None, last.line, last.col))

    functions = {}
    i = 0
    while tokens[i].kind != 'EOF':
        tok = tokens[i]
        if tok.kind != 'KEYWORD' or tok.value != 'fun':
            raise ParseError('UnexpectedToken', f'expected fun, got {_describe(tok)}', tok.line, tok.col)
        name_tok = tokens[i + 1]
        if name_tok.kind != 'IDENT':
            raise ParseError('MissingFunctionName', f'fun needs a name, got {_describe(name_tok)}',
                             tok.line, tok.col, incomplete=name_tok.kind == 'EOF')
        name = name_tok.value
        if name in functions:
            raise ParseError('DuplicateFunction', f'function {name} is already defined',
                             name_tok.line, name_tok.col)
        functions[name], i = _parse_body(tokens, i + 2, name)
    return Program(functions)


def _parse_body(tokens: list, i: int, name: str):
    """Parse from tokens[i] through the matching ret. Returns (code, next index)."""
    code = []
    open_loops = []         # (enclosing code, while token)
    while True:
        tok = tokens[i]; i += 1
        kind, value = tok.kind, tok.value

        if kind == 'INT':
            code.append(Instruction('PUSH', value, tok.line, tok.col))
        elif kind == 'OP':
            code.append(Instruction(OPERATORS[value], None, tok.line, tok.col))
        elif kind == 'IDENT':
            if value in BUILTINS:
                code.append(Instruction(BUILTINS[value], None, tok.line, tok.col))
            else:
                code.append(Instruction('CALL', value, tok.line, tok.col))

        elif value == 'while':
            open_loops.append((code, tok))
            code = []
        elif value == 'end':
            if not open_loops:
                raise ParseError('UnmatchedEnd', f'end without while in {name}', tok.line, tok.col)
            outer, wtok = open_loops.pop()
            outer.append(Instruction('LOOP', tuple(code), wtok.line, wtok.col))
            code = outer
        elif value == 'ret':
            if open_loops:
                wtok = open_loops[-1][1]
                raise ParseError('UnclosedWhile', f'while in {name} is not closed before ret',
                                 wtok.line, wtok.col)
            return tuple(code), i

        # 'fun' or end of input before ret
        elif kind == 'EOF' and open_loops:
            wtok = open_loops[-1][1]
            raise ParseError('UnclosedWhile', f'while in {name} is never closed',
                             wtok.line, wtok.col, incomplete=True)
        else:
            raise ParseError('MissingRet', f'function {name} has no ret before {_describe(tok)}',
                             tok.line, tok.col, incomplete=kind == 'EOF')


def load(source: str) -> Program:
    return parse(tokenize(source))


# ── Machine ───────────────────────────────────────────────────────────────────

class Machine:
    """One run of a Program: data stack, frame stack and output.

    A frame is [code, ip, function name, LOOP instruction or None]. A machine
    runs once; start a new one to run again.
    """

    def __init__(self, program: Program, stack=None, max_depth=MAX_DEPTH,
                 max_steps=MAX_STEPS, cancel=None, trace=None):
        self.program   = program
        self.stack     = list(stack or ())
        self.frames    = []
        self.out       = []
        self.state     = NOT_STARTED
        self.steps     = 0
        self.max_depth = max_depth
        self.max_steps = max_steps
        self.cancel    = cancel     # anything with is_set(), e.g. threading.Event
        self.trace     = trace      # text stream, one line per instruction
        self._instr    = None

    # ── Errors ────────────────────────────────────────────────────────────────

    def _error(self, kind, message):
        instr = self._instr
        if instr is None:
            return RunError(kind, message)
        return RunError(kind, message, instr.line, instr.col)

    # ── Stack ─────────────────────────────────────────────────────────────────

    def _pop(self):
        if not self.stack:
            raise self._error('StackUnderflow', 'stack underflow')
        return self.stack.pop()

    def _peek(self):
        if not self.stack:
            raise self._error('StackUnderflow', 'stack underflow')
        return self.stack[-1]

    def _need(self, n):
        if len(self.stack) < n:
            raise self._error('StackUnderflow', f'stack underflow: need {n}, have {len(self.stack)}')

    # ── Frames ────────────────────────────────────────────────────────────────

    def _enter(self, code, name, loop=None):
        if self.max_depth is not None and len(self.frames) >= self.max_depth:
            raise self._error('DepthExceeded', f'nesting deeper than {self.max_depth} in {name}')
        self.frames.append([code, 0, name, loop])

    def _tick(self):
        self.steps += 1
        if self.max_steps is not None and self.steps > self.max_steps:
            raise self._error('StepLimitExceeded', f'step budget of {self.max_steps} exhausted')
        if self.cancel is not None and self.cancel.is_set():
            raise self._error('Cancelled', 'run cancelled by host')

    # ── Public ────────────────────────────────────────────────────────────────

    def run(self, entry: str = DEFAULT_ENTRY) -> list:
        if self.state != NOT_STARTED:
            raise FunstackError('MachineUsed', f'machine is {self.state}; start a new one')
        self.state = RUNNING
        try:
            code = self.program.get(entry)
            if code is None:
                raise RunError('EntryNotFound', f'no function named {entry}')
            self._enter(code, entry)
            self._inner()
        except RunError as e:
            self.state = FAILED
            e.output = list(self.out)
            raise
        except BaseException:
            self.state = FAILED
            raise
        self.state = COMPLETED
        return self.out

    # ── Inner interpreter ─────────────────────────────────────────────────────

    def _inner(self):
        frames = self.frames
        stack  = self.stack
        while frames:
            frame = frames[-1]
            code, ip = frame[0], frame[1]

            if ip >= len(code):
                loop = frame[3]
                if loop is not None:
                    self._instr = loop
                    self._tick()
                    if self._peek() != 0:
                        frame[1] = 0
                        continue
                frames.pop()
                continue

            instr = code[ip]
            frame[1] = ip + 1
            self._instr = instr
            self._tick()
            if self.trace is not None:
                self.trace.write(f'{frame[2]}:{instr.line} {_render_one(instr)}  {stack}\n')

            op = instr.op
            if op == 'PUSH':
                stack.append(instr.arg)

            elif op == 'DUP':
                stack.append(self._peek())

            elif op == 'POP':
                self._pop()

            elif op == 'SWAP':
                self._need(2); stack[-1], stack[-2] = stack[-2], stack[-1]

            elif op == 'OVER':
                self._need(2); stack.append(stack[-2])

            elif op in ('ADD', 'SUB', 'MUL', 'DIV'):
                self._need(2)
                a = stack.pop()
                b = stack.pop()
                stack.append(self._arith(op, b, a))

            elif op == 'PRINT':
                self.out.append(self._pop())

            elif op == 'CALL':
                target = self.program.get(instr.arg)
                if target is None:
                    raise self._error('UnresolvedCall', f'call to undefined function {instr.arg}')
                self._enter(target, instr.arg)

            elif op == 'LOOP':
                if self._peek() != 0:
                    self._enter(instr.arg, frame[2], instr)

            else:
                raise self._error('BadInstruction', f'bad instruction: {op}')

    def _arith(self, op, b, a):
        if   op == 'ADD': r = b + a
        elif op == 'SUB': r = b - a
        elif op == 'MUL': r = b * a
        else:
            if a == 0:
                raise self._error('DivisionByZero', f'{b} / 0')
            r = abs(b) // abs(a)
            if (b < 0) != (a < 0):
                r = -r
        if not INT_MIN <= r <= INT_MAX:
            raise self._error('Overflow', f'{b} {_WORDS[op]} {a} does not fit in 64 bits')
        return r


def run(program: Program, entry: str = DEFAULT_ENTRY, **limits):
    """Run entry on a fresh machine. Returns (output, RunError or None).

    On failure the output printed before the error is returned with it.
    """
    try:
        return Machine(program, **limits).run(entry), None
    except RunError as e:
        return e.output, e


def execute(program: Program, entry: str = DEFAULT_ENTRY, **limits) -> list:
    return Machine(program, **limits).run(entry)


# ── SEE ───────────────────────────────────────────────────────────────────────

_WORDS = {'DUP': 'dup', 'POP': 'pop', 'SWAP': 'swap', 'OVER': 'over', 'PRINT': 'print',
          'ADD': '+', 'SUB': '-', 'MUL': '*', 'DIV': '/'}


def _render_one(instr: Instruction) -> str:
    op = instr.op
    if op == 'PUSH': return str(instr.arg)
    if op == 'CALL': return instr.arg
    if op == 'LOOP': return f'while<{len(instr.arg)}>'
    return _WORDS.get(op, repr(instr))


def _render(code) -> list:
    parts = []
    pending = [iter(code)]
    while pending:
        instr = next(pending[-1], None)
        if instr is None:
            pending.pop()
            if pending:
                parts.append('end')
        elif instr.op == 'LOOP':
            parts.append('while')
            pending.append(iter(instr.arg))
        else:
            parts.append(_render_one(instr))
    return parts


def disassemble(program: Program, name: str) -> str:
    code = program.get(name)
    if code is None:
        raise FunstackError('UnknownFunction', f'see: unknown function {name}')
    return ' '.join(['fun', name] + _render(code) + ['ret'])


# ── Static check ──────────────────────────────────────────────────────────────

class Effect(NamedTuple):
    needs: int      # values that must already be on the stack
    net:   int      # change in depth once finished


_EFFECTS = {
    'PUSH': Effect(0, 1),  'DUP':  Effect(1, 1),  'POP':   Effect(1, -1),
    'SWAP': Effect(2, 0),  'OVER': Effect(2, 1),  'PRINT': Effect(1, -1),
    'ADD':  Effect(2, -1), 'SUB':  Effect(2, -1), 'MUL':   Effect(2, -1), 'DIV': Effect(2, -1),
}


class _Frame:
    __slots__ = ('code', 'ip', 'needs', 'depth', 'name', 'key', 'waiting')

    def __init__(self, code, name=None, key=None):
        self.code = code
        self.ip = 0
        self.needs = 0
        self.depth = 0
        self.name = name        # function being analysed, if any
        self.key = key          # id of a loop body, if any
        self.waiting = False    # code[ip] is waiting on a nested frame


def _loop_effect(body: Optional[Effect]) -> Optional[Effect]:
    return None if body is None or body.net != 0 else Effect(max(1, body.needs), 0)


class _Analyzer:
    """Stack effects of functions and instruction sequences, or None where
    they depend on data: recursion, undefined call targets and loops whose
    body changes the depth.

    Calls and loop bodies are followed with an explicit frame stack, so
    nesting depth is not bounded by Python's recursion limit.
    """

    def __init__(self, program: Program):
        self.program = program
        self.known = {}         # function name -> effect
        self.bodies = {}        # id(loop body) -> effect
        self.active = set()

    def function(self, name) -> Optional[Effect]:
        if name in self.known:
            return self.known[name]
        if name not in self.program or name in self.active:
            return None
        return self._evaluate(self._enter(self.program[name], name=name))

    def code(self, code) -> Optional[Effect]:
        key = id(code)
        if key in self.bodies:
            return self.bodies[key]
        return self._evaluate(self._enter(code, key=key))

    def _enter(self, code, name=None, key=None):
        if name is not None:
            self.active.add(name)
        return _Frame(code, name, key)

    def _finish(self, frame, effect):
        if frame.name is not None:
            self.active.discard(frame.name)
            self.known[frame.name] = effect
        if frame.key is not None:
            self.bodies[frame.key] = effect
        return effect

    def _evaluate(self, root: _Frame) -> Optional[Effect]:
        frames = [root]
        returned = None
        while frames:
            frame = frames[-1]
            if frame.waiting:
                frame.waiting = False
                instr = frame.code[frame.ip]
                e = _loop_effect(returned) if instr.op == 'LOOP' else returned

            elif frame.ip >= len(frame.code):
                returned = self._finish(frame, Effect(frame.needs, frame.depth))
                frames.pop()
                continue

            else:
                instr = frame.code[frame.ip]
                if instr.op == 'CALL':
                    target = instr.arg
                    if target in self.known:
                        e = self.known[target]
                    elif target not in self.program or target in self.active:
                        e = None
                    else:
                        frame.waiting = True
                        frames.append(self._enter(self.program[target], name=target))
                        continue
                elif instr.op == 'LOOP':
                    key = id(instr.arg)
                    if key in self.bodies:
                        e = _loop_effect(self.bodies[key])
                    else:
                        frame.waiting = True
                        frames.append(self._enter(instr.arg, key=key))
                        continue
                else:
                    e = _EFFECTS[instr.op]

            if e is None:
                returned = self._finish(frame, None)
                frames.pop()
                continue
            frame.needs = max(frame.needs, e.needs - frame.depth)
            frame.depth += e.net
            frame.ip += 1
        return returned


def stack_effects(program: Program) -> dict:
    analyzer = _Analyzer(program)
    return {name: analyzer.function(name) for name in program}


def check(program: Program, entry: str = DEFAULT_ENTRY) -> list:
    """Lint a loaded program. Returns 'name:line: message' findings, never raises."""
    findings = []
    analyzer = _Analyzer(program)

    for name, code in program.items():
        pending = [iter(code)]
        while pending:
            instr = next(pending[-1], None)
            if instr is None:
                pending.pop()
            elif instr.op == 'CALL' and instr.arg not in program:
                findings.append(f'{name}:{instr.line}: call to undefined function {instr.arg}')
            elif instr.op == 'LOOP':
                body = analyzer.code(instr.arg)
                if body is not None and body.net != 0:
                    findings.append(f'{name}:{instr.line}: loop body changes stack depth by {body.net:+d}')
                pending.append(iter(instr.arg))

    if entry not in program:
        findings.append(f'entry function {entry} is not defined')
    else:
        effect = analyzer.function(entry)
        if effect is not None and effect.needs > 0:
            findings.append(f'{entry}: needs {effect.needs} value(s) but starts on an empty stack')
    return findings


# ── Interactive session ───────────────────────────────────────────────────────

HELP_TEXT = """\
Examples:
  fun main 2 3 + print ret          run -> 5
  fun square dup * ret
  fun main 7 square print ret       run -> 49
  fun count 3 while dup print 1 - end pop ret
                                    run count -> 3 2 1

Definitions may span lines; input is buffered until every fun has its ret.
Stack words:  dup pop swap over + - * / print .
Loop:         while ... end   (runs while TOS is nonzero, TOS is not consumed)
Commands:     run [NAME]  words  see NAME  reset  help  bye
"""


class Session:
    """Definitions accumulated across lines of interactive input.

    Redefining a function in a later chunk replaces the earlier definition.
    """

    def __init__(self, **limits):
        self.functions = {}
        self.pending = ''
        self.limits = limits

    @property
    def continuing(self) -> bool:
        return bool(self.pending)

    def feed(self, line: str) -> str:
        if not self.pending:
            words = line.split()
            if not words:
                return ''
            cmd = words[0].lower()
            if cmd == 'run':
                return self._run(words[1] if len(words) > 1 else DEFAULT_ENTRY)
            if cmd == 'words':
                return '  '.join(self.functions)
            if cmd == 'see':
                if len(words) < 2:
                    return ' Error: see needs a name'
                try:
                    return disassemble(Program(self.functions), words[1])
                except FunstackError as e:
                    return f' Error: {e}'
            if cmd == 'reset':
                self.functions = {}
                return '( Environment reset )\n ok'
            if cmd == 'help':
                return HELP_TEXT

        self.pending += line + '\n'
        try:
            program = load(self.pending)
        except ParseError as e:
            if e.incomplete:
                return ''
            self.pending = ''
            return f' Error: {e}'
        except LexError as e:
            self.pending = ''
            return f' Error: {e}'
        self.pending = ''
        self.functions.update(program)
        return ' ok'

    def _run(self, entry):
        out, err = run(Program(self.functions), entry, **self.limits)
        text = ' '.join(str(v) for v in out)
        if err is not None:
            return f'{text}\n Error: {err}'.lstrip('\n')
        return f'{text} ok'.lstrip()


def repl():
    session = Session()
    print('funstack  -  type bye to exit, help for examples')
    while True:
        try:
            line = input('    ' if session.continuing else 'ok> ')
            if not session.continuing and line.strip().lower() == 'bye':
                break
            out = session.feed(line)
            if out:
                print(out)
        except EOFError:
            break
        except KeyboardInterrupt:
            print('\nInterrupted - pending input discarded, definitions kept')
            session.pending = ''


# ── Tests ─────────────────────────────────────────────────────────────────────

FACTORIAL = """\
# factorial of the value on top of the stack
fun factorial       # n
  1 swap            # acc n
  while             # acc n, loops while n is nonzero
    swap over *     # n acc*n
    swap 1 -        # acc*n n-1
  end
  pop               # acc
ret

fun main
  5 factorial print
ret
"""


def run_tests():
    cases = [
        # Arithmetic
        ('fun main 1 2 + print ret',             [3]),
        ('fun main 10 3 - print ret',            [7]),
        ('fun main 6 7 * print ret',             [42]),
        ('fun main 20 4 / print ret',            [5]),
        ('fun main -7 2 / print ret',            [-3]),
        ('fun main 3 -4 * . ret',                [-12]),

        # Stack words
        ('fun main 3 dup print print ret',       [3, 3]),
        ('fun main 3 4 swap print print ret',    [3, 4]),
        ('fun main 1 2 over print print print ret', [1, 2, 1]),
        ('fun main 1 2 pop print ret',           [1]),
        ('fun main 1 2 dup pop print print ret', [2, 1]),
        ('fun main 1 2 swap swap print print ret', [2, 1]),

        # Calls, forward references
        ('fun main 5 square print ret fun square dup * ret', [25]),
        ('fun cube dup dup * * ret fun main 3 cube print ret', [27]),

        # Loops
        ('fun main 3 while dup print 1 - end print ret', [3, 2, 1, 0]),
        ('fun main 7 0 while 99 print end print print ret', [0, 7]),
        ('fun main 2 while 2 while 1 print 1 - end pop 1 - end pop ret', [1, 1, 1, 1]),
        (FACTORIAL,                              [120]),

        # Failures
        ('fun main dup ret',                     'StackUnderflow'),
        ('fun main 1 + ret',                     'StackUnderflow'),
        ('fun main print ret',                   'StackUnderflow'),
        ('fun main while end ret',               'StackUnderflow'),
        ('fun main nowhere ret',                 'UnresolvedCall'),
        ('fun main main ret',                    'DepthExceeded'),
        ('fun main 1 0 / ret',                   'DivisionByZero'),
        ('fun main 9223372036854775807 1 + ret', 'Overflow'),
        ('fun start 1 print ret',                'EntryNotFound'),
        ('fun main 12ab ret',                    'MalformedNumber'),
        ('fun main -x ret',                      'MalformedNumber'),
        ('fun main 1 @ ret',                     'UnknownCharacter'),
        ('fun 5 ret',                            'MissingFunctionName'),
        ('fun main 1 print',                     'MissingRet'),
        ('fun main end ret',                     'UnmatchedEnd'),
        ('fun main 1 while 1 - ret',             'UnclosedWhile'),
        ('fun a ret fun a ret',                  'DuplicateFunction'),
        ('1 2 +',                                'UnexpectedToken'),
    ]

    passed = 0
    failures = []

    for src, expected in cases:
        try:
            out, err = run(load(src))
        except FunstackError as e:
            out, err = [], e
        got = out if err is None else err.kind
        if got == expected:
            passed += 1
        else:
            failures.append((src[:60], repr(expected), repr(got)))

    print(f'Tests: {passed}/{len(cases)} passed')
    for src, exp, got in failures:
        print(f'  FAIL: {src}')
        print(f'    exp: {exp}')
        print(f'    got: {got}')
    return passed, len(cases)


# ── Command line ──────────────────────────────────────────────────────────────

def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog='funstack', description='Run a funstack program.')
    parser.add_argument('file', nargs='?', help='source file; omit for the interactive prompt')
    parser.add_argument('--entry', default=DEFAULT_ENTRY, help='function to run (default: main)')
    parser.add_argument('--max-depth', type=int, default=MAX_DEPTH, help='call/loop nesting limit')
    parser.add_argument('--max-steps', type=int, default=MAX_STEPS, help='instruction budget')
    parser.add_argument('--check', action='store_true', help='lint before running; findings abort')
    parser.add_argument('--trace', action='store_true', help='trace each instruction to stderr')
    parser.add_argument('--see', metavar='NAME', help='print a function instead of running')
    parser.add_argument('--test', action='store_true', help='run the built-in self tests')
    args = parser.parse_args(argv)

    if args.test:
        p, t = run_tests()
        return 0 if p == t else 1
    if args.file is None:
        repl()
        return 0

    try:
        source = Path(args.file).read_text(encoding='utf-8')
    except OSError as e:
        print(f'Error: cannot read {args.file}: {e.strerror}', file=sys.stderr)
        return 1
    except UnicodeDecodeError as e:
        print(f'Error: {args.file} is not UTF-8 text: {e.reason} at byte {e.start}', file=sys.stderr)
        return 1

    try:
        program = load(source)
        if args.see:
            print(disassemble(program, args.see))
            return 0
    except FunstackError as e:
        print(f'Error: {e}', file=sys.stderr)
        return 1

    if args.check:
        findings = check(program, args.entry)
        for finding in findings:
            print(f'check: {finding}', file=sys.stderr)
        if findings:
            return 1

    out, err = run(program, args.entry, max_depth=args.max_depth, max_steps=args.max_steps,
                   trace=sys.stderr if args.trace else None)
    for value in out:
        print(value)
    if err is not None:
        print(f'Error: {err}', file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
