from __future__ import annotations

from dataclasses import is_dataclass
from typing import Any, Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from mini_interpreter import Diagnostic, MiniInterpreterEngine, RuntimeIssue, Token, TokenKind
from mini_runtime import call_with_host_budget, demo_program, execute


app = FastAPI(title="Mini Interpreter", version="1.0.0")

app.add_middleware(
	CORSMiddleware,
	allow_origins=["*"],
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)


class CompileRequest(BaseModel):
	source: str
	cfg_summary: bool = False


class RunRequest(BaseModel):
	source: str
	cfg_summary: bool = False
	# None disables the budget; the web default guards against endless loops.
	max_steps: Optional[int] = 50_000


def _to_json(obj: Any, *, depth: int = 0, max_depth: int = 64) -> Any:
	"""Best-effort conversion of interpreter artifacts to JSON-safe structures."""
	if depth > max_depth:
		return {"_truncated": True}
	if obj is None:
		return None
	if isinstance(obj, (str, int, float, bool)):
		return obj
	if isinstance(obj, list):
		return [_to_json(x, depth=depth + 1, max_depth=max_depth) for x in obj]
	if isinstance(obj, dict):
		return {str(k): _to_json(v, depth=depth + 1, max_depth=max_depth) for k, v in obj.items()}
	if is_dataclass(obj):
		data: Dict[str, Any] = {"_type": obj.__class__.__name__}
		for k, v in obj.__dict__.items():
			data[k] = _to_json(v, depth=depth + 1, max_depth=max_depth)
		return data
	# Enums (Severity/TokenKind)
	if hasattr(obj, "name") and hasattr(obj, "value"):
		return getattr(obj, "name")
	return str(obj)


def _diagnostic_json(d: Diagnostic) -> Dict[str, Any]:
	return {
		"severity": d.severity.name,
		"message": d.message,
		"hint": d.hint,
		"span": _to_json(d.span),
	}


def _token_json(t: Token) -> Dict[str, Any]:
	return {
		"kind": t.kind.name,
		"lexeme": t.lexeme,
		"value": t.value,
		"span": _to_json(t.span),
	}


@app.get("/", response_class=HTMLResponse)
def index() -> HTMLResponse:
	return HTMLResponse(
		"<h2>Mini Interpreter API</h2>"
		"<p>POST <code>/api/run</code> with JSON: <code>{\"source\": \"print(1 + 2);\"}</code></p>"
		"<p>GET <code>/api/demo</code> for a sample program.</p>"
	)


@app.get("/health")
def health() -> Dict[str, str]:
	return {"status": "ok"}


@app.get("/api/demo")
def demo() -> Dict[str, str]:
	return {"source": demo_program()}


@app.post("/api/compile")
def compile_source(req: CompileRequest) -> Dict[str, Any]:
	art = call_with_host_budget(MiniInterpreterEngine().compile, req.source, cfg_summary=req.cfg_summary)
	return {
		"duration_ms": art.duration_ms,
		"token_count": len(art.tokens),
		"diagnostic_count": len(art.diagnostics),
		"has_ast": art.ast is not None,
		"diagnostics": [_diagnostic_json(d) for d in art.diagnostics],
		"tokens": [_token_json(t) for t in art.tokens if t.kind != TokenKind.END],
		"ast": _to_json(art.ast),
	}


@app.post("/api/run")
def run_source(req: RunRequest) -> Dict[str, Any]:
	report = execute(req.source, cfg_summary=req.cfg_summary, max_steps=req.max_steps)

	error = None
	if report.error is not None:
		error = {
			"kind": report.error.label,
			"message": report.error.message,
			"span": _to_json(report.error.span),
			"call_stack": report.error.call_stack if isinstance(report.error, RuntimeIssue) else [],
		}
	return {
		"text": report.text,
		"output": report.output,
		"steps": report.steps,
		"duration_ms": report.duration_ms,
		"error": error,
		"diagnostics": [_diagnostic_json(d) for d in report.compilation.diagnostics],
	}
