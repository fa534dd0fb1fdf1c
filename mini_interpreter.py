"""Front-end of the mini interpreter: diagnostics, lexer, AST, parser and compilation engine."""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Deque, Dict, Iterable, List, Optional

# ---------------------------------------------------------------------------
# Diagnostic infrastructure


class Severity(Enum):
	INFO = auto()
	WARNING = auto()
	ERROR = auto()


@dataclass(frozen=True)
class Position:
	line: int
	column: int
	index: int


@dataclass(frozen=True)
class Span:
	start: Position
	end: Position


@dataclass
class Diagnostic:
	severity: Severity
	message: str
	span: Optional[Span] = None
	hint: Optional[str] = None


class DiagnosticEngine:
	def __init__(self) -> None:
		self._items: List[Diagnostic] = []

	@property
	def items(self) -> List[Diagnostic]:
		return self._items

	def report(self, severity: Severity, message: str, span: Optional[Span] = None, hint: Optional[str] = None) -> None:
		self._items.append(Diagnostic(severity, message, span, hint))


def combine_span(a: Span, b: Span) -> Span:
	return Span(start=a.start, end=b.end)


class InterpreterIssue(Exception):
	"""Base class for every error a program can trigger. Each one aborts the run."""

	label = "Error"

	def __init__(self, message: str, span: Optional[Span] = None, hint: Optional[str] = None) -> None:
		super().__init__(message)
		self.message = message
		self.span = span
		self.hint = hint

	def __str__(self) -> str:
		return self.message

	def report(self) -> str:
		lines = [f"{self.label}: {self.message}"]
		if self.span is not None:
			start = self.span.start
			lines.append(f"  at line {start.line}, column {start.column} (offset {start.index})")
		if self.hint:
			lines.append(f"  hint: {self.hint}")
		lines.extend(self._context())
		return "\n".join(lines) + "\n"

	def _context(self) -> List[str]:
		return []


class LexicalIssue(InterpreterIssue):
	label = "Lexical Error"


class SyntaxIssue(InterpreterIssue):
	label = "Syntax Error"


class RuntimeIssue(InterpreterIssue):
	label = "Runtime Error"

	def __init__(
		self,
		message: str,
		span: Optional[Span] = None,
		call_stack: Optional[List[str]] = None,
		hint: Optional[str] = None,
	) -> None:
		super().__init__(message, span, hint)
		# Innermost call first.
		self.call_stack: List[str] = list(call_stack or [])

	def _context(self) -> List[str]:
		return [f"  in {name}" for name in self.call_stack]


# ---------------------------------------------------------------------------
# Integer semantics

INT_BITS = 64
_INT_MODULUS = 1 << INT_BITS
_INT_SIGN_BIT = 1 << (INT_BITS - 1)


def wrap_int(value: int) -> int:
	"""Fold an arbitrary Python int into the signed 64-bit range (two's complement)."""
	value &= _INT_MODULUS - 1
	if value & _INT_SIGN_BIT:
		value -= _INT_MODULUS
	return value


# ---------------------------------------------------------------------------
# Lexer


class TokenKind(Enum):
	END = auto()
	INT = auto()
	ID = auto()
	IF = auto()
	ELSE = auto()
	WHILE = auto()
	FUNC = auto()
	RETURN = auto()
	PRINT = auto()
	PLUS = auto()
	MINUS = auto()
	STAR = auto()
	SLASH = auto()
	PERCENT = auto()
	ASSIGN = auto()
	EQ = auto()
	NEQ = auto()
	LT = auto()
	LTE = auto()
	GT = auto()
	GTE = auto()
	LPAREN = auto()
	RPAREN = auto()
	LBRACE = auto()
	RBRACE = auto()
	COMMA = auto()
	SEMI = auto()


KEYWORDS: Dict[str, TokenKind] = {
	"if": TokenKind.IF,
	"else": TokenKind.ELSE,
	"while": TokenKind.WHILE,
	"func": TokenKind.FUNC,
	"return": TokenKind.RETURN,
	"print": TokenKind.PRINT,
}


TWO_CHAR_SYMBOLS: Dict[str, TokenKind] = {
	"==": TokenKind.EQ,
	"!=": TokenKind.NEQ,
	"<=": TokenKind.LTE,
	">=": TokenKind.GTE,
}


SYMBOLS: Dict[str, TokenKind] = {
	"+": TokenKind.PLUS,
	"-": TokenKind.MINUS,
	"*": TokenKind.STAR,
	"/": TokenKind.SLASH,
	"%": TokenKind.PERCENT,
	"=": TokenKind.ASSIGN,
	"<": TokenKind.LT,
	">": TokenKind.GT,
	"(": TokenKind.LPAREN,
	")": TokenKind.RPAREN,
	"{": TokenKind.LBRACE,
	"}": TokenKind.RBRACE,
	",": TokenKind.COMMA,
	";": TokenKind.SEMI,
}


@dataclass(frozen=True)
class Token:
	kind: TokenKind
	lexeme: str
	span: Span
	value: Optional[int] = None

	def describe(self) -> str:
		if self.kind == TokenKind.END:
			return "END"
		return f"{self.kind.name} '{self.lexeme}'"


class Lexer:
	def __init__(self, source: str) -> None:
		self.source = source
		self.length = len(source)
		self.index = 0
		self.line = 1
		self.column = 1

	def tokenize(self) -> List[Token]:
		tokens: List[Token] = []
		while not self._is_eof():
			ch = self._peek()
			if ch.isspace():
				self._advance()
			elif ch == "/" and self._peek_next() == "/":
				self._consume_line_comment()
			elif ch == "/" and self._peek_next() == "*":
				self._consume_block_comment()
			elif ch.isdecimal():
				tokens.append(self._consume_number())
			elif ch.isalpha() or ch == "_":
				tokens.append(self._consume_identifier())
			else:
				tokens.append(self._consume_symbol())
		tokens.append(self._make_token(TokenKind.END, "", self._current_position()))
		return tokens

	def _consume_line_comment(self) -> None:
		while not self._is_eof() and self._peek() != "\n":
			self._advance()

	def _consume_block_comment(self) -> None:
		self._advance()
		self._advance()
		end = self.source.find("*/", self.index)
		# An unterminated comment swallows the rest of the source.
		stop = self.length if end < 0 else end + 2
		while self.index < stop:
			self._advance()

	def _consume_identifier(self) -> Token:
		start = self._current_position()
		lexeme = self._consume_while(lambda c: c.isalnum() or c == "_")
		kind = KEYWORDS.get(lexeme, TokenKind.ID)
		return self._make_token(kind, lexeme, start)

	def _consume_number(self) -> Token:
		start = self._current_position()
		lexeme = self._consume_while(lambda c: c.isdecimal())
		return self._make_token(TokenKind.INT, lexeme, start, wrap_int(int(lexeme)))

	def _consume_symbol(self) -> Token:
		start = self._current_position()
		candidate = self.source[self.index : self.index + 2]
		if candidate in TWO_CHAR_SYMBOLS:
			self._advance()
			self._advance()
			return self._make_token(TWO_CHAR_SYMBOLS[candidate], candidate, start)
		ch = self._advance()
		if ch in SYMBOLS:
			return self._make_token(SYMBOLS[ch], ch, start)
		raise LexicalIssue(f"Unknown character '{ch}' at offset {start.index}", Span(start, self._current_position()))

	def _consume_while(self, predicate) -> str:
		start_index = self.index
		while not self._is_eof() and predicate(self._peek()):
			self._advance()
		return self.source[start_index : self.index]

	def _current_position(self) -> Position:
		return Position(self.line, self.column, self.index)

	def _make_token(self, kind: TokenKind, lexeme: str, start: Position, value: Optional[int] = None) -> Token:
		return Token(kind, lexeme, Span(start, self._current_position()), value)

	def _advance(self) -> str:
		ch = self.source[self.index]
		self.index += 1
		if ch == "\n":
			self.line += 1
			self.column = 1
		else:
			self.column += 1
		return ch

	def _peek(self) -> str:
		return self.source[self.index]

	def _peek_next(self) -> str:
		if self.index + 1 >= self.length:
			return ""
		return self.source[self.index + 1]

	def _is_eof(self) -> bool:
		return self.index >= self.length


class TokenStream:
	"""FIFO of tokens with non-consuming lookahead. Once drained it keeps yielding END."""

	def __init__(self, tokens: Iterable[Token]) -> None:
		self._queue: Deque[Token] = deque(tokens)
		if self._queue and self._queue[-1].kind == TokenKind.END:
			self._end = self._queue[-1]
		else:
			last = self._queue[-1].span.end if self._queue else Position(1, 1, 0)
			self._end = Token(TokenKind.END, "", Span(last, last))

	def __len__(self) -> int:
		return len(self._queue)

	def peek(self, offset: int = 0) -> Token:
		if offset < len(self._queue):
			return self._queue[offset]
		return self._end

	def pop(self) -> Token:
		if self._queue:
			return self._queue.popleft()
		return self._end


# ---------------------------------------------------------------------------
# AST definitions


@dataclass
class ASTNode:
	span: Span


class Statement(ASTNode):
	pass


class Expression(ASTNode):
	pass


@dataclass
class IntLiteral(Expression):
	value: int


@dataclass
class VariableExpression(Expression):
	name: str


@dataclass
class BinaryExpression(Expression):
	left: Expression
	operator: TokenKind
	right: Expression


@dataclass
class CallExpression(Expression):
	name: str
	arguments: List[Expression]


@dataclass
class BlockStatement(Statement):
	statements: List[Statement]


@dataclass
class ExpressionStatement(Statement):
	expression: Expression


@dataclass
class IfStatement(Statement):
	condition: Expression
	then_branch: Statement
	else_branch: Optional[Statement]


@dataclass
class WhileStatement(Statement):
	condition: Expression
	body: Statement


@dataclass
class ReturnStatement(Statement):
	value: Optional[Expression]


@dataclass
class AssignmentStatement(Statement):
	name: str
	value: Expression


@dataclass
class FunctionDef(ASTNode):
	name: str
	parameters: List[str]
	body: BlockStatement


@dataclass
class ProgramNode(ASTNode):
	functions: List[FunctionDef]
	body: BlockStatement


PRINT_BUILTIN = "print"
NESTING_MESSAGE = "Program is nested too deeply to parse"


# ---------------------------------------------------------------------------
# Parser


EQUALITY_OPERATORS = (TokenKind.EQ, TokenKind.NEQ)
RELATIONAL_OPERATORS = (TokenKind.LT, TokenKind.LTE, TokenKind.GT, TokenKind.GTE)
ADDITIVE_OPERATORS = (TokenKind.PLUS, TokenKind.MINUS)
MULTIPLICATIVE_OPERATORS = (TokenKind.STAR, TokenKind.SLASH, TokenKind.PERCENT)


class Parser:
	def __init__(self, tokens: TokenStream) -> None:
		self.tokens = tokens

	def parse_program(self) -> ProgramNode:
		functions: List[FunctionDef] = []
		statements: List[Statement] = []
		start = self._peek().span
		while not self._check(TokenKind.END):
			if self._check(TokenKind.FUNC):
				functions.append(self._parse_function())
			else:
				statements.append(self._parse_statement())
		span = combine_span(start, self._peek().span)
		return ProgramNode(span=span, functions=functions, body=BlockStatement(span=span, statements=statements))

	def _parse_function(self) -> FunctionDef:
		func_token = self._expect(TokenKind.FUNC)
		name_token = self._expect(TokenKind.ID)
		self._expect(TokenKind.LPAREN)
		parameters: List[str] = []
		if not self._check(TokenKind.RPAREN):
			parameters.append(self._expect(TokenKind.ID).lexeme)
			while self._match(TokenKind.COMMA):
				parameters.append(self._expect(TokenKind.ID).lexeme)
		self._expect(TokenKind.RPAREN)
		body = self._parse_block()
		return FunctionDef(span=combine_span(func_token.span, body.span), name=name_token.lexeme, parameters=parameters, body=body)

	def _parse_block(self) -> BlockStatement:
		lbrace = self._expect(TokenKind.LBRACE)
		statements: List[Statement] = []
		while not self._check(TokenKind.RBRACE) and not self._check(TokenKind.END):
			statements.append(self._parse_statement())
		rbrace = self._expect(TokenKind.RBRACE)
		return BlockStatement(span=combine_span(lbrace.span, rbrace.span), statements=statements)

	def _parse_statement(self) -> Statement:
		token = self._peek()
		if self._match(TokenKind.RETURN):
			value = None if self._check(TokenKind.SEMI) else self._parse_expression()
			semi = self._expect(TokenKind.SEMI)
			return ReturnStatement(span=combine_span(token.span, semi.span), value=value)
		if self._match(TokenKind.IF):
			self._expect(TokenKind.LPAREN)
			condition = self._parse_expression()
			self._expect(TokenKind.RPAREN)
			then_branch = self._parse_statement()
			else_branch = self._parse_statement() if self._match(TokenKind.ELSE) else None
			span = combine_span(token.span, (else_branch or then_branch).span)
			return IfStatement(span=span, condition=condition, then_branch=then_branch, else_branch=else_branch)
		if self._match(TokenKind.WHILE):
			self._expect(TokenKind.LPAREN)
			condition = self._parse_expression()
			self._expect(TokenKind.RPAREN)
			body = self._parse_statement()
			return WhileStatement(span=combine_span(token.span, body.span), condition=condition, body=body)
		if self._check(TokenKind.LBRACE):
			return self._parse_block()
		if self._match(TokenKind.PRINT):
			call = self._finish_call(token)
			semi = self._expect(TokenKind.SEMI)
			return ExpressionStatement(span=combine_span(token.span, semi.span), expression=call)
		if self._check(TokenKind.ID):
			lookahead = self.tokens.peek(1)
			if lookahead.kind == TokenKind.ASSIGN:
				self._advance_token()
				self._advance_token()
				value = self._parse_expression()
				semi = self._expect(TokenKind.SEMI)
				return AssignmentStatement(span=combine_span(token.span, semi.span), name=token.lexeme, value=value)
			if lookahead.kind == TokenKind.LPAREN:
				self._advance_token()
				call = self._finish_call(token)
				semi = self._expect(TokenKind.SEMI)
				return ExpressionStatement(span=combine_span(token.span, semi.span), expression=call)
		expression = self._parse_expression()
		semi = self._expect(TokenKind.SEMI)
		return ExpressionStatement(span=combine_span(expression.span, semi.span), expression=expression)

	def _finish_call(self, name_token: Token) -> CallExpression:
		self._expect(TokenKind.LPAREN)
		args: List[Expression] = []
		if not self._check(TokenKind.RPAREN):
			args.append(self._parse_expression())
			while self._match(TokenKind.COMMA):
				args.append(self._parse_expression())
		rparen = self._expect(TokenKind.RPAREN)
		return CallExpression(span=combine_span(name_token.span, rparen.span), name=name_token.lexeme, arguments=args)

	def _parse_expression(self) -> Expression:
		return self._parse_equality()

	def _parse_equality(self) -> Expression:
		return self._parse_left_assoc(EQUALITY_OPERATORS, self._parse_relational)

	def _parse_relational(self) -> Expression:
		return self._parse_left_assoc(RELATIONAL_OPERATORS, self._parse_additive)

	def _parse_additive(self) -> Expression:
		return self._parse_left_assoc(ADDITIVE_OPERATORS, self._parse_term)

	def _parse_term(self) -> Expression:
		return self._parse_left_assoc(MULTIPLICATIVE_OPERATORS, self._parse_unary)

	def _parse_left_assoc(self, operators, operand) -> Expression:
		expr = operand()
		while self._peek().kind in operators:
			operator = self._advance_token()
			right = operand()
			expr = BinaryExpression(span=combine_span(expr.span, right.span), left=expr, operator=operator.kind, right=right)
		return expr

	def _parse_unary(self) -> Expression:
		minus = self._peek()
		if self._match(TokenKind.MINUS):
			operand = self._parse_unary()
			zero = IntLiteral(span=minus.span, value=0)
			return BinaryExpression(span=combine_span(minus.span, operand.span), left=zero, operator=TokenKind.MINUS, right=operand)
		return self._parse_primary()

	def _parse_primary(self) -> Expression:
		token = self._peek()
		if self._match(TokenKind.INT):
			return IntLiteral(span=token.span, value=token.value or 0)
		if self._match(TokenKind.ID) or self._match(TokenKind.PRINT):
			if self._check(TokenKind.LPAREN):
				return self._finish_call(token)
			if token.kind == TokenKind.PRINT:
				raise self._error(TokenKind.LPAREN, self._peek())
			return VariableExpression(span=token.span, name=token.lexeme)
		if self._match(TokenKind.LPAREN):
			expr = self._parse_expression()
			self._expect(TokenKind.RPAREN)
			return expr
		raise SyntaxIssue(f"Expected expression but got {token.describe()}", token.span)

	# Utility parsing helpers -------------------------------------------------

	def _peek(self) -> Token:
		return self.tokens.peek()

	def _check(self, kind: TokenKind) -> bool:
		return self.tokens.peek().kind == kind

	def _match(self, kind: TokenKind) -> bool:
		if self._check(kind):
			self.tokens.pop()
			return True
		return False

	def _advance_token(self) -> Token:
		return self.tokens.pop()

	def _expect(self, kind: TokenKind) -> Token:
		if self._check(kind):
			return self.tokens.pop()
		raise self._error(kind, self._peek())

	def _error(self, expected: TokenKind, got: Token) -> SyntaxIssue:
		message = f"Expected {expected.name} but got {got.describe()}"
		return SyntaxIssue(message, got.span, hint=self._hint_for_expect(expected, got))

	def _hint_for_expect(self, expected: TokenKind, got: Token) -> Optional[str]:
		if expected == TokenKind.SEMI:
			return "Statements must end with ';'."
		if expected == TokenKind.LBRACE:
			return "Function bodies start with '{', e.g. func f(n) { return n; }"
		if expected == TokenKind.RBRACE:
			return "Blocks end with '}'. Check for a missing closing brace or an extra '{' earlier."
		if expected == TokenKind.RPAREN:
			return "Missing ')'. Check calls and conditions like: if (cond) { ... }"
		if expected == TokenKind.LPAREN:
			return "Missing '('. Calls and conditions need parentheses like: print(x); while (i < n) { ... }"
		if expected == TokenKind.ID and got.kind in KEYWORDS.values():
			return f"'{got.lexeme}' is a keyword and cannot be used as a name."
		return None


# ---------------------------------------------------------------------------
# Control-flow graph summary (diagnostic only)


@dataclass
class CFGNode:
	id: int
	label: str
	outs: List["CFGNode"] = field(default_factory=list)


@dataclass
class ControlFlowGraph:
	nodes: List[CFGNode] = field(default_factory=list)

	def new_node(self, label: str) -> CFGNode:
		node = CFGNode(id=len(self.nodes) + 1, label=label)
		self.nodes.append(node)
		return node


def build_cfg(function: FunctionDef) -> ControlFlowGraph:
	"""Straight-line graph: entry, one node per top-level body statement, exit."""
	cfg = ControlFlowGraph()
	prev = cfg.new_node("entry")
	for stmt in function.body.statements:
		node = cfg.new_node(stmt.__class__.__name__)
		prev.outs.append(node)
		prev = node
	prev.outs.append(cfg.new_node("exit"))
	return cfg


# ---------------------------------------------------------------------------
# Compilation pipeline


@dataclass
class CompilationArtifacts:
	tokens: List[Token]
	ast: Optional[ProgramNode]
	diagnostics: List[Diagnostic]
	duration_ms: float
	error: Optional[InterpreterIssue] = None

	@property
	def info_text(self) -> str:
		return "".join(f"{d.message}\n" for d in self.diagnostics if d.severity != Severity.ERROR)


class MiniInterpreterEngine:
	def compile(self, source: str, *, cfg_summary: bool = False) -> CompilationArtifacts:
		diagnostics = DiagnosticEngine()
		start = time.perf_counter()
		tokens: List[Token] = []
		ast: Optional[ProgramNode] = None
		error: Optional[InterpreterIssue] = None
		try:
			tokens = Lexer(source or "").tokenize()
			ast = Parser(TokenStream(tokens)).parse_program()
		except (LexicalIssue, SyntaxIssue) as issue:
			diagnostics.report(Severity.ERROR, issue.message, issue.span, hint=issue.hint)
			error = issue
		except RecursionError:
			ast = None
			error = SyntaxIssue(NESTING_MESSAGE, hint="Split the expression into several assignments.")
			diagnostics.report(Severity.ERROR, error.message, hint=error.hint)
		if ast is not None:
			self._check_functions(ast, diagnostics)
			if cfg_summary:
				for function in ast.functions:
					cfg = build_cfg(function)
					diagnostics.report(Severity.INFO, f"[CFG] Function {function.name} has {len(cfg.nodes)} nodes", function.span)
		duration_ms = (time.perf_counter() - start) * 1000
		return CompilationArtifacts(tokens=tokens, ast=ast, diagnostics=diagnostics.items, duration_ms=duration_ms, error=error)

	def _check_functions(self, program: ProgramNode, diagnostics: DiagnosticEngine) -> None:
		seen: Dict[str, FunctionDef] = {}
		for function in program.functions:
			if function.name in seen:
				diagnostics.report(
					Severity.WARNING,
					f"Function '{function.name}' is defined more than once; the last definition wins.",
					function.span,
				)
			seen[function.name] = function
