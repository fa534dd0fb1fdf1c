"""Tree-walking evaluator and the single-call runner built on top of the front-end.

Scoping is flat and dynamic: a name resolves to the innermost live activation
record that already binds it, otherwise to the global table. Assignment never
introduces a local; it rebinds an existing one or writes a global.

``execute`` runs each program on a worker thread with a large stack and a
raised recursion limit, so language recursion depth is bounded by
``HOST_RECURSION_LIMIT`` rather than the interpreter default. Exhausting it is
reported as a runtime error like any other.
"""

from __future__ import annotations

import sys
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from mini_interpreter import (
	PRINT_BUILTIN,
	AssignmentStatement,
	BinaryExpression,
	BlockStatement,
	CallExpression,
	CompilationArtifacts,
	Expression,
	ExpressionStatement,
	FunctionDef,
	IfStatement,
	IntLiteral,
	InterpreterIssue,
	MiniInterpreterEngine,
	ProgramNode,
	ReturnStatement,
	RuntimeIssue,
	Span,
	Statement,
	TokenKind,
	VariableExpression,
	WhileStatement,
	wrap_int,
)


MAIN_FRAME = "<main>"
NO_OUTPUT = "(no output)\n"
RECURSION_MESSAGE = "Recursion depth exhausted"

# Each language call costs about seven Python frames.
HOST_RECURSION_LIMIT = 50_000
HOST_STACK_SIZE = 256 * 1024 * 1024


# ---------------------------------------------------------------------------
# Runtime state


class SymbolKind(Enum):
	VAR = auto()
	FUNC = auto()


@dataclass
class Symbol:
	kind: SymbolKind
	name: str
	value: int = 0
	function: Optional[FunctionDef] = None


@dataclass
class ActivationRecord:
	function_name: str
	locals: Dict[str, int] = field(default_factory=dict)


@dataclass
class RuntimeContext:
	"""Everything one run mutates. Never shared between runs."""

	globals: Dict[str, Symbol] = field(default_factory=dict)
	# Innermost record last.
	call_stack: List[ActivationRecord] = field(default_factory=list)
	output: List[str] = field(default_factory=list)
	steps: int = 0


# Statement completion: either fall through to the next statement or unwind with a value.


class Continue:
	__slots__ = ()

	def __repr__(self) -> str:
		return "CONTINUE"


CONTINUE = Continue()


@dataclass(frozen=True)
class Return:
	value: int


Completion = Union[Continue, Return]


@dataclass
class RunArtifacts:
	output: str
	steps: int
	globals: Dict[str, int]
	runtime_error: Optional[RuntimeIssue] = None


# ---------------------------------------------------------------------------
# Evaluator


class Interpreter:
	"""
	Executes a parsed program.

	Supported:
	- 64-bit wrapping integer arithmetic, comparisons yielding 1/0
	- assignments, if/else, while, return
	- user functions (recursive) and the print builtin
	"""

	def __init__(self, *, max_steps: Optional[int] = None) -> None:
		self._max_steps = max_steps
		self._ctx = RuntimeContext()

	def run(self, program: ProgramNode) -> RunArtifacts:
		self._ctx = RuntimeContext()
		try:
			self._register_functions(program.functions)
			self._ctx.call_stack.append(ActivationRecord(MAIN_FRAME))
			try:
				# A top-level return just ends the program.
				self._exec_statement(program.body)
			finally:
				self._ctx.call_stack.pop()
		except RuntimeIssue as issue:
			return self._artifacts(issue)
		except RecursionError:
			# Frames are already unwound here; only the output survives.
			return self._artifacts(RuntimeIssue(RECURSION_MESSAGE, hint="Reduce the call depth of the program."))
		return self._artifacts(None)

	def _artifacts(self, issue: Optional[RuntimeIssue]) -> RunArtifacts:
		final_globals = {name: sym.value for name, sym in self._ctx.globals.items() if sym.kind == SymbolKind.VAR}
		return RunArtifacts(output="".join(self._ctx.output), steps=self._ctx.steps, globals=final_globals, runtime_error=issue)

	def _register_functions(self, functions: List[FunctionDef]) -> None:
		for fn in functions:
			self._ctx.globals[fn.name] = Symbol(SymbolKind.FUNC, fn.name, function=fn)

	def _fail(self, message: str, span: Optional[Span] = None) -> RuntimeIssue:
		stack = [record.function_name for record in reversed(self._ctx.call_stack)]
		return RuntimeIssue(message, span, call_stack=stack)

	def _tick(self, span: Optional[Span]) -> None:
		self._ctx.steps += 1
		if self._max_steps is not None and self._ctx.steps > self._max_steps:
			raise self._fail("Step limit exceeded (possible infinite loop).", span)

	# Statements -------------------------------------------------------------

	def _exec_statement(self, stmt: Statement) -> Completion:
		self._tick(stmt.span)

		if isinstance(stmt, BlockStatement):
			for s in stmt.statements:
				result = self._exec_statement(s)
				if isinstance(result, Return):
					return result
			return CONTINUE
		if isinstance(stmt, ExpressionStatement):
			self._eval_expression(stmt.expression)
			return CONTINUE
		if isinstance(stmt, AssignmentStatement):
			self._assign(stmt.name, self._eval_expression(stmt.value))
			return CONTINUE
		if isinstance(stmt, IfStatement):
			if self._eval_expression(stmt.condition) != 0:
				return self._exec_statement(stmt.then_branch)
			if stmt.else_branch is not None:
				return self._exec_statement(stmt.else_branch)
			return CONTINUE
		if isinstance(stmt, WhileStatement):
			while self._eval_expression(stmt.condition) != 0:
				result = self._exec_statement(stmt.body)
				if isinstance(result, Return):
					return result
			return CONTINUE
		if isinstance(stmt, ReturnStatement):
			value = self._eval_expression(stmt.value) if stmt.value is not None else 0
			return Return(value)

		raise self._fail(f"Unsupported statement: {stmt.__class__.__name__}", stmt.span)

	# Expressions ------------------------------------------------------------

	def _eval_expression(self, expr: Expression) -> int:
		if isinstance(expr, IntLiteral):
			return expr.value
		if isinstance(expr, VariableExpression):
			return self._lookup(expr)
		if isinstance(expr, BinaryExpression):
			left = self._eval_expression(expr.left)
			right = self._eval_expression(expr.right)
			return self._apply_operator(expr, left, right)
		if isinstance(expr, CallExpression):
			return self._eval_call(expr)

		raise self._fail(f"Unsupported expression: {expr.__class__.__name__}", expr.span)

	def _apply_operator(self, expr: BinaryExpression, l: int, r: int) -> int:
		op = expr.operator
		if op == TokenKind.PLUS:
			return wrap_int(l + r)
		if op == TokenKind.MINUS:
			return wrap_int(l - r)
		if op == TokenKind.STAR:
			return wrap_int(l * r)
		if op == TokenKind.SLASH:
			if r == 0:
				raise self._fail("Division by zero", expr.span)
			return wrap_int(_truncated_div(l, r))
		if op == TokenKind.PERCENT:
			if r == 0:
				raise self._fail("Division by zero", expr.span)
			return wrap_int(l - r * _truncated_div(l, r))

		# comparisons return int 1/0
		if op == TokenKind.EQ:
			return 1 if l == r else 0
		if op == TokenKind.NEQ:
			return 1 if l != r else 0
		if op == TokenKind.LT:
			return 1 if l < r else 0
		if op == TokenKind.LTE:
			return 1 if l <= r else 0
		if op == TokenKind.GT:
			return 1 if l > r else 0
		if op == TokenKind.GTE:
			return 1 if l >= r else 0

		raise self._fail(f"Unsupported binary operator: {op.name}", expr.span)

	def _eval_call(self, call: CallExpression) -> int:
		if call.name == PRINT_BUILTIN:
			if len(call.arguments) != 1:
				raise self._fail(f"print takes exactly 1 argument, got {len(call.arguments)}", call.span)
			value = self._eval_expression(call.arguments[0])
			self._ctx.output.append(f"{value}\n")
			return 0

		sym = self._ctx.globals.get(call.name)
		if sym is None or sym.kind != SymbolKind.FUNC:
			raise self._fail(f"Unknown function: {call.name}", call.span)
		fn = sym.function
		if len(fn.parameters) != len(call.arguments):
			raise self._fail(
				f"Arity mismatch for {fn.name}: expected {len(fn.parameters)} arguments, got {len(call.arguments)}",
				call.span,
			)

		record = ActivationRecord(fn.name)
		for param, arg in zip(fn.parameters, call.arguments):
			record.locals[param] = self._eval_expression(arg)

		self._ctx.call_stack.append(record)
		try:
			result = self._exec_statement(fn.body)
		finally:
			self._ctx.call_stack.pop()
		return result.value if isinstance(result, Return) else 0

	# Name resolution --------------------------------------------------------

	def _lookup(self, expr: VariableExpression) -> int:
		for record in reversed(self._ctx.call_stack):
			if expr.name in record.locals:
				return record.locals[expr.name]
		sym = self._ctx.globals.get(expr.name)
		if sym is not None and sym.kind == SymbolKind.VAR:
			return sym.value
		raise self._fail(f"Undefined variable: {expr.name}", expr.span)

	def _assign(self, name: str, value: int) -> None:
		for record in reversed(self._ctx.call_stack):
			if name in record.locals:
				record.locals[name] = value
				return
		# Overwrites a function of the same name as well.
		self._ctx.globals[name] = Symbol(SymbolKind.VAR, name, value=value)


def _truncated_div(l: int, r: int) -> int:
	# Quotient rounded toward zero.
	q = abs(l) // abs(r)
	return q if (l < 0) == (r < 0) else -q


# ---------------------------------------------------------------------------
# Host budget

_budget_lock = threading.Lock()
_budget_users = 0
_saved_recursion_limit = 0


@contextmanager
def _raised_recursion_limit() -> Iterator[None]:
	# The limit is process-wide: raise it for the first active run, restore it after the last one.
	global _budget_users, _saved_recursion_limit
	with _budget_lock:
		if _budget_users == 0:
			_saved_recursion_limit = sys.getrecursionlimit()
			sys.setrecursionlimit(max(_saved_recursion_limit, HOST_RECURSION_LIMIT))
		_budget_users += 1
	try:
		yield
	finally:
		with _budget_lock:
			_budget_users -= 1
			if _budget_users == 0:
				sys.setrecursionlimit(_saved_recursion_limit)


def call_with_host_budget(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
	"""Call ``func`` on a worker thread with a large stack and a raised recursion limit."""
	outcome: Dict[str, Any] = {}

	def target() -> None:
		try:
			outcome["value"] = func(*args, **kwargs)
		except BaseException as exc:
			outcome["error"] = exc

	with _raised_recursion_limit():
		with _budget_lock:
			previous_size = threading.stack_size(HOST_STACK_SIZE)
			try:
				worker = threading.Thread(target=target, name="mini-interpreter-run")
				worker.start()
			finally:
				threading.stack_size(previous_size)
		worker.join()

	if "error" in outcome:
		raise outcome["error"]
	return outcome["value"]


# ---------------------------------------------------------------------------
# Runner


@dataclass
class ExecutionReport:
	compilation: CompilationArtifacts
	output: str = ""
	steps: int = 0
	globals: Dict[str, int] = field(default_factory=dict)
	error: Optional[InterpreterIssue] = None
	duration_ms: float = 0.0

	@property
	def text(self) -> str:
		body = self.compilation.info_text + self.output
		if self.error is not None:
			body += self.error.report()
		return body or NO_OUTPUT


def execute(source: str, *, cfg_summary: bool = False, max_steps: Optional[int] = None) -> ExecutionReport:
	"""Lex, parse and run one program with freshly created state."""
	return call_with_host_budget(_execute, source, cfg_summary, max_steps)


def _execute(source: str, cfg_summary: bool, max_steps: Optional[int]) -> ExecutionReport:
	start = time.perf_counter()
	compilation = MiniInterpreterEngine().compile(source or "", cfg_summary=cfg_summary)
	report = ExecutionReport(compilation=compilation, error=compilation.error)
	if compilation.ast is not None:
		run = Interpreter(max_steps=max_steps).run(compilation.ast)
		report.output = run.output
		report.steps = run.steps
		report.globals = run.globals
		report.error = run.runtime_error
	report.duration_ms = (time.perf_counter() - start) * 1000
	return report


def run_source(source: str, *, cfg_summary: bool = False, max_steps: Optional[int] = None) -> str:
	"""Run ``source`` and return info text, print output and any error report as one string."""
	return execute(source, cfg_summary=cfg_summary, max_steps=max_steps).text


def demo_program() -> str:
	return (
		"// Demo program for the mini interpreter\n"
		"// Factorial using recursion, plus loops, conditionals, and print\n"
		"\n"
		"func fact(n) {\n"
		"    if (n == 0) {\n"
		"        return 1;\n"
		"    } else {\n"
		"        return n * fact(n - 1);\n"
		"    }\n"
		"}\n"
		"\n"
		"x = 7;\n"
		"y = fact(x);\n"
		"print(y);\n"
		"\n"
		"// iterative sum\n"
		"func sumN(n) {\n"
		"    i = 0;\n"
		"    acc = 0;\n"
		"    while (i < n) {\n"
		"        i = i + 1;\n"
		"        acc = acc + i;\n"
		"    }\n"
		"    return acc;\n"
		"}\n"
		"\n"
		"print(sumN(10));\n"
	)
