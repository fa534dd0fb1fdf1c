"""Evaluator semantics: arithmetic, control flow, calls, flat scoping and runtime errors."""

import pytest

from mini_interpreter import MiniInterpreterEngine
from mini_runtime import MAIN_FRAME, Interpreter


def run(source, **kwargs):
	art = MiniInterpreterEngine().compile(source)
	assert art.error is None, art.error
	return Interpreter(**kwargs).run(art.ast)


def output_of(source):
	result = run(source)
	assert result.runtime_error is None, result.runtime_error
	return result.output


def error_of(source):
	result = run(source)
	assert result.runtime_error is not None
	return result.runtime_error


def test_straight_line_arithmetic():
	src = "print(1 + 2); print(2 * 3 - 1); print(7 / 2); print(-7 / 2); print(-7 % 3); print(7 % -3);"
	assert output_of(src) == "3\n5\n3\n-3\n-1\n1\n"


def test_comparisons_yield_one_or_zero():
	src = "print(1 < 2); print(2 <= 1); print(3 == 3); print(3 != 3); print(2 > 1); print(1 >= 1);"
	assert output_of(src) == "1\n0\n1\n0\n1\n1\n"


def test_recursive_factorial():
	src = "func fact(n){ if(n==0){return 1;} else {return n*fact(n-1);} } print(fact(5));"
	assert output_of(src) == "120\n"


def test_iterative_sum():
	assert output_of("i=0;acc=0;while(i<10){i=i+1;acc=acc+i;}print(acc);") == "55\n"


def test_assignment_inside_call_writes_global():
	result = run("func f(){x=5;} f(); print(x);")
	assert result.output == "5\n"
	assert result.globals == {"x": 5}


def test_parameters_are_rebound_locally():
	src = "func f(n){ n = n + 1; return n; } n = 10; print(f(1)); print(n);"
	assert output_of(src) == "2\n10\n"


def test_lookup_searches_caller_frames():
	src = "func inner(){ return a; } func outer(a){ return inner(); } print(outer(7));"
	assert output_of(src) == "7\n"


def test_assignment_updates_nearest_frame_binding_the_name():
	src = "func setter(){ a = 99; } func outer(a){ setter(); return a; } print(outer(1));"
	result = run(src)
	assert result.output == "99\n"
	assert "a" not in result.globals


def test_blocks_do_not_introduce_scopes():
	assert output_of("{ y = 3; } print(y);") == "3\n"


def test_missing_return_value_defaults_to_zero():
	assert output_of("func f(){ return; } func g(){ x = 1; } print(f()); print(g());") == "0\n0\n"


def test_print_evaluates_to_zero():
	assert output_of("x = print(5); print(x);") == "5\n0\n"


def test_return_inside_loop_leaves_function():
	src = "func firstOver(lim){ i = 0; while (1) { i = i + 1; if (i * i > lim) return i; } } print(firstOver(50));"
	assert output_of(src) == "8\n"


def test_top_level_return_stops_program():
	assert output_of("print(1); return; print(2);") == "1\n"


def test_arguments_evaluated_left_to_right():
	src = "func f(a, b){ return a - b; } print(f(print(1), print(2)));"
	assert output_of(src) == "1\n2\n0\n"


def test_arithmetic_wraps_at_64_bits():
	assert output_of("print(9223372036854775807 + 1);") == "-9223372036854775808\n"
	assert output_of("print(-9223372036854775808 / -1);") == "-9223372036854775808\n"


def test_division_by_zero_keeps_earlier_output():
	result = run("print(1); print(1 / 0); print(2);")
	assert result.output == "1\n"
	assert result.runtime_error.message == "Division by zero"
	assert result.runtime_error.call_stack == [MAIN_FRAME]


def test_modulo_by_zero():
	assert error_of("print(5 % 0);").message == "Division by zero"


def test_undefined_variable():
	assert error_of("print(q);").message == "Undefined variable: q"


def test_unknown_function():
	assert error_of("nope(1);").message == "Unknown function: nope"


def test_calling_a_variable_is_unknown_function():
	assert error_of("x = 1; x();").message == "Unknown function: x"


def test_function_name_is_not_a_variable():
	assert error_of("func f(){ return 1; } print(f);").message == "Undefined variable: f"


def test_assignment_replaces_function_symbol():
	result = run("func f(){ return 1; } f = 3; print(f); f();")
	assert result.output == "3\n"
	assert result.runtime_error.message == "Unknown function: f"


def test_arity_mismatch_is_checked_before_arguments():
	result = run("func f(a){ return a; } f(print(1), 2);")
	assert result.output == ""
	assert result.runtime_error.message.startswith("Arity mismatch for f")


def test_print_requires_exactly_one_argument():
	assert error_of("print(1, 2);").message == "print takes exactly 1 argument, got 2"
	assert error_of("print();").message == "print takes exactly 1 argument, got 0"


def test_runtime_error_records_call_stack_innermost_first():
	src = "func g(d){ return 10 / d; } func h(){ return g(0); } print(h());"
	assert error_of(src).call_stack == ["g", "h", MAIN_FRAME]


def test_call_stack_is_unwound_after_return():
	assert error_of("func g(){ return 1; } g(); print(q);").call_stack == [MAIN_FRAME]


def test_call_stack_is_unwound_after_error():
	interp = Interpreter()
	engine = MiniInterpreterEngine()
	first = interp.run(engine.compile("func g(){ return q; } g();").ast)
	assert first.runtime_error.call_stack == ["g", MAIN_FRAME]
	second = interp.run(engine.compile("print(q);").ast)
	assert second.runtime_error.call_stack == [MAIN_FRAME]


def test_step_budget_stops_endless_loop():
	result = run("while (1) { }", max_steps=100)
	assert result.runtime_error is not None
	assert "Step limit exceeded" in result.runtime_error.message
	assert result.steps == 101


def test_interpreter_reuse_does_not_leak_globals():
	interp = Interpreter()
	engine = MiniInterpreterEngine()
	first = interp.run(engine.compile("x = 1; print(x);").ast)
	second = interp.run(engine.compile("print(x);").ast)
	assert first.output == "1\n"
	assert second.runtime_error.message == "Undefined variable: x"
	assert second.globals == {}


@pytest.mark.parametrize("n, expected", [(0, 1), (1, 1), (10, 89)])
def test_recursive_fibonacci(n, expected):
	src = "func fib(n){ if (n < 2) return 1; return fib(n - 1) + fib(n - 2); } print(fib(%d));" % n
	assert output_of(src) == f"{expected}\n"
