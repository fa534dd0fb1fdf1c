"""Tokenizer behaviour: keywords, operators, comments, positions and lexical errors."""

import pytest

from mini_interpreter import Lexer, LexicalIssue, Position, TokenKind, TokenStream


def kinds(source):
	return [t.kind for t in Lexer(source).tokenize()]


def test_assignment_tokens():
	tokens = Lexer("x = 42;").tokenize()
	assert [t.kind for t in tokens] == [TokenKind.ID, TokenKind.ASSIGN, TokenKind.INT, TokenKind.SEMI, TokenKind.END]
	assert tokens[0].lexeme == "x"
	assert tokens[2].value == 42


def test_keywords_and_identifiers():
	assert kinds("if else while func return print iffy _tmp1") == [
		TokenKind.IF,
		TokenKind.ELSE,
		TokenKind.WHILE,
		TokenKind.FUNC,
		TokenKind.RETURN,
		TokenKind.PRINT,
		TokenKind.ID,
		TokenKind.ID,
		TokenKind.END,
	]


def test_two_char_operators_are_greedy():
	assert kinds("a<=b==c!=d>=e<f>g") == [
		TokenKind.ID, TokenKind.LTE, TokenKind.ID, TokenKind.EQ, TokenKind.ID, TokenKind.NEQ,
		TokenKind.ID, TokenKind.GTE, TokenKind.ID, TokenKind.LT, TokenKind.ID, TokenKind.GT,
		TokenKind.ID, TokenKind.END,
	]
	assert kinds("= =") == [TokenKind.ASSIGN, TokenKind.ASSIGN, TokenKind.END]


def test_single_char_punctuation():
	assert kinds("+-*/%(){},;") == [
		TokenKind.PLUS, TokenKind.MINUS, TokenKind.STAR, TokenKind.SLASH, TokenKind.PERCENT,
		TokenKind.LPAREN, TokenKind.RPAREN, TokenKind.LBRACE, TokenKind.RBRACE,
		TokenKind.COMMA, TokenKind.SEMI, TokenKind.END,
	]


def test_comments_are_skipped():
	tokens = Lexer("1 // two\n3 /* 4\n */ 5").tokenize()
	assert [t.value for t in tokens if t.kind == TokenKind.INT] == [1, 3, 5]


def test_unterminated_block_comment_swallows_rest():
	assert kinds("1 /* 2 3") == [TokenKind.INT, TokenKind.END]
	# the closing marker is searched for after the opener only
	assert kinds("/*/ 1") == [TokenKind.END]


def test_number_followed_by_letters_splits():
	assert kinds("12ab") == [TokenKind.INT, TokenKind.ID, TokenKind.END]


def test_integer_literal_wraps_to_64_bits():
	token = Lexer("9223372036854775808").tokenize()[0]
	assert token.value == -9223372036854775808


def test_positions_track_lines_and_columns():
	tokens = Lexer("a\n  b").tokenize()
	assert tokens[1].span.start == Position(line=2, column=3, index=4)


def test_unknown_character_reports_offset():
	with pytest.raises(LexicalIssue) as excinfo:
		Lexer("x = 1 @ 2").tokenize()
	issue = excinfo.value
	assert "'@'" in issue.message
	assert "offset 6" in issue.message
	assert issue.span.start.index == 6


def test_lone_bang_is_not_an_operator():
	with pytest.raises(LexicalIssue):
		Lexer("!x").tokenize()


def test_tokens_are_immutable():
	token = Lexer("x").tokenize()[0]
	with pytest.raises(Exception):
		token.lexeme = "y"


def test_token_stream_lookahead_does_not_consume():
	stream = TokenStream(Lexer("f(1);").tokenize())
	assert len(stream) == 6
	assert stream.peek().kind == TokenKind.ID
	assert stream.peek(1).kind == TokenKind.LPAREN
	assert len(stream) == 6
	assert stream.pop().kind == TokenKind.ID
	assert stream.peek().kind == TokenKind.LPAREN
	assert stream.peek(10).kind == TokenKind.END


def test_drained_token_stream_keeps_yielding_end():
	stream = TokenStream(Lexer("").tokenize())
	assert stream.pop().kind == TokenKind.END
	assert stream.pop().kind == TokenKind.END
	assert stream.peek().kind == TokenKind.END
