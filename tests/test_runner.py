"""End-to-end tests of the single-call runner: rendering, isolation and error reports."""

import sys
from concurrent.futures import ThreadPoolExecutor

from mini_interpreter import NESTING_MESSAGE, Severity
from mini_runtime import NO_OUTPUT, RECURSION_MESSAGE, demo_program, execute, run_source


def test_print_output_is_returned():
	assert run_source("print(1 + 1);") == "2\n"


def test_empty_program_has_no_output_marker():
	assert run_source("") == NO_OUTPUT
	assert run_source("x = 1;") == "(no output)\n"


def test_demo_program():
	assert run_source(demo_program()) == "5040\n55\n"


def test_demo_program_final_globals():
	report = execute(demo_program())
	assert report.error is None
	assert report.globals == {"x": 7, "y": 5040, "i": 10, "acc": 55}


def test_runtime_error_is_appended_after_output():
	text = run_source("print(7); print(1 / 0);")
	assert text.startswith("7\nRuntime Error: Division by zero\n")
	assert "  at line 1" in text
	assert text.endswith("  in <main>\n")


def test_undefined_variable_report_names_variable():
	assert "Runtime Error: Undefined variable: q" in run_source("print(q);")


def test_lexical_error_report():
	text = run_source("x = 1 $ 2;")
	assert text.startswith("Lexical Error: Unknown character '$' at offset 6\n")


def test_syntax_error_report_has_hint():
	text = run_source("print(1)")
	assert text.startswith("Syntax Error: Expected SEMI but got END\n")
	assert "  hint: Statements must end with ';'.\n" in text


def test_syntax_error_runs_nothing():
	assert run_source("print(1); print(2)").startswith("Syntax Error:")


def test_runs_do_not_share_state():
	assert run_source("x = 41; print(x + 1);") == "42\n"
	assert "Undefined variable: x" in run_source("print(x);")


def test_same_program_twice_gives_same_text():
	src = "func f(n){ if (n == 0) return 0; return n + f(n - 1); } print(f(20)); t = t + 1;"
	first = run_source(src)
	second = run_source(src)
	assert first == second
	assert first.startswith("210\nRuntime Error: Undefined variable: t")


def test_cfg_summary_precedes_output():
	src = "func f(a){ a = 1; return a; } print(f(2));"
	assert run_source(src, cfg_summary=True) == "[CFG] Function f has 4 nodes\n1\n"
	assert run_source(src) == "1\n"


def test_cfg_summary_is_reported_as_info():
	report = execute("func f(){ } func g(){ return 1; }", cfg_summary=True)
	infos = [d.message for d in report.compilation.diagnostics if d.severity == Severity.INFO]
	assert infos == ["[CFG] Function f has 2 nodes", "[CFG] Function g has 3 nodes"]


def test_duplicate_function_warns_and_last_wins():
	text = run_source("func f(){ return 1; } func f(){ return 2; } print(f());")
	assert text == "Function 'f' is defined more than once; the last definition wins.\n2\n"


def test_step_budget_is_reported():
	text = run_source("while (1) { }", max_steps=50)
	assert text.startswith("Runtime Error: Step limit exceeded")


def test_deep_recursion_runs_to_completion():
	src = "func s(n){ if (n == 0) return 0; return n + s(n - 1); } print(1); print(s(1000));"
	assert run_source(src) == "1\n500500\n"


def test_unbounded_recursion_keeps_earlier_output():
	text = run_source("print(1); func f(n){ return f(n + 1); } f(0);")
	assert text.startswith(f"1\nRuntime Error: {RECURSION_MESSAGE}\n")


def test_deeply_nested_expression_runs():
	depth = 300
	assert run_source("print(" + "(" * depth + "1" + ")" * depth + ");") == "1\n"


def test_nesting_beyond_host_budget_is_a_syntax_error():
	depth = 10_000
	text = run_source("print(1); print(" + "(" * depth + "1" + ")" * depth + ");")
	assert text.startswith(f"Syntax Error: {NESTING_MESSAGE}\n")


def test_host_recursion_limit_is_restored():
	before = sys.getrecursionlimit()
	run_source("print(1);")
	assert sys.getrecursionlimit() == before


def test_concurrent_runs_are_independent():
	programs = {k: f"k = {k}; func sq(v){{ return v * v; }} print(sq(k));" for k in range(16)}
	with ThreadPoolExecutor(max_workers=8) as pool:
		results = dict(zip(programs, pool.map(run_source, programs.values())))
	for k, text in results.items():
		assert text == f"{k * k}\n"
