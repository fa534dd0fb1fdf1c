"""Command-line and Tkinter shells around the mini interpreter."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

# Tkinter is only required for the desktop GUI. Keep the CLI usable without it.
try:
	import tkinter as tk
	from tkinter import filedialog, ttk
except Exception:  # pragma: no cover
	tk = None  # type: ignore[assignment]
	filedialog = None  # type: ignore[assignment]
	ttk = None  # type: ignore[assignment]

from mini_interpreter import KEYWORDS, Lexer, InterpreterIssue, Token, TokenKind
from mini_runtime import demo_program, execute


# ---------------------------------------------------------------------------
# GUI components


if tk is not None:
	class CodeEditor(tk.Frame):
		def __init__(self, master: "tk.Widget") -> None:
			super().__init__(master)
			self.text = tk.Text(
				self,
				wrap="none",
				font=("Consolas", 13),
				undo=True,
				background="#1e1e1e",
				foreground="#d4d4d4",
				insertbackground="#d4d4d4",
			)
			self.line_numbers = tk.Text(self, width=4, state="disabled", background="#1f1f1f", foreground="#8f8f8f", font=("Consolas", 11))
			self.v_scroll = ttk.Scrollbar(self, orient="vertical", command=self._on_scroll)
			self.text.configure(yscrollcommand=self._on_text_scroll)
			self.line_numbers.pack(side="left", fill="y")
			self.text.pack(side="left", fill="both", expand=True)
			self.v_scroll.pack(side="right", fill="y")
			self.text.bind("<KeyRelease>", self._on_key_release)
			self.text.tag_configure("keyword", foreground="#569cd6")
			self.text.tag_configure("literal", foreground="#b5cea8")
			self.text.tag_configure("identifier", foreground="#dcdcaa")

		def _on_text_scroll(self, *args) -> None:
			self.v_scroll.set(*args)
			self.line_numbers.yview_moveto(args[0])

		def _on_scroll(self, *args) -> None:
			self.text.yview(*args)
			self.line_numbers.yview(*args)

		def _on_key_release(self, _event: Optional["tk.Event"] = None) -> None:
			self._update_line_numbers()
			self.highlight()

		def _update_line_numbers(self) -> None:
			self.line_numbers.configure(state="normal")
			self.line_numbers.delete("1.0", tk.END)
			line_count = int(self.text.index("end-1c").split(".")[0])
			self.line_numbers.insert("1.0", "\n".join(str(i).rjust(3) for i in range(1, line_count + 1)))
			self.line_numbers.configure(state="disabled")

		def get_text(self) -> str:
			return self.text.get("1.0", "end-1c")

		def set_text(self, content: str) -> None:
			self.text.delete("1.0", tk.END)
			self.text.insert("1.0", content)
			self._update_line_numbers()
			self.highlight()

		def highlight(self) -> None:
			for tag in ("keyword", "literal", "identifier"):
				self.text.tag_remove(tag, "1.0", tk.END)
			try:
				tokens = Lexer(self.get_text()).tokenize()
			except InterpreterIssue:
				# Half-typed source; keep the previous colouring off until it lexes again.
				return
			for token in tokens:
				tag = _highlight_tag(token)
				if tag is None:
					continue
				start = token.span.start
				end = token.span.end
				self.text.tag_add(tag, f"{start.line}.{start.column - 1}", f"{end.line}.{end.column - 1}")


	class InterpreterApp(tk.Tk):
		def __init__(self) -> None:
			super().__init__()
			self.title("Mini Interpreter")
			self.geometry("900x700")
			self._build_ui()
			self.editor.set_text(demo_program())

		def _build_ui(self) -> None:
			style = ttk.Style(self)
			try:
				style.theme_use("clam")
			except tk.TclError:
				pass

			self.columnconfigure(0, weight=1)
			self.rowconfigure(1, weight=3)
			self.rowconfigure(3, weight=2)

			toolbar = ttk.Frame(self)
			toolbar.grid(row=0, column=0, sticky="ew")
			ttk.Button(toolbar, text="Run (Ctrl+Enter)", command=self._run).pack(side="left", padx=4, pady=4)
			ttk.Button(toolbar, text="Clear", command=self._clear).pack(side="left", padx=4)
			ttk.Button(toolbar, text="Load File", command=self._open_file).pack(side="left", padx=4)
			ttk.Button(toolbar, text="Demo", command=lambda: self.editor.set_text(demo_program())).pack(side="left", padx=4)
			self.cfg_var = tk.BooleanVar(value=False)
			ttk.Checkbutton(toolbar, text="CFG summary", variable=self.cfg_var).pack(side="left", padx=8)

			self.editor = CodeEditor(self)
			self.editor.grid(row=1, column=0, sticky="nsew", padx=6)

			ttk.Label(self, text="Output:").grid(row=2, column=0, sticky="w", padx=6)
			self.output = tk.Text(
				self,
				height=12,
				wrap="word",
				state="disabled",
				font=("Consolas", 12),
				background="#1e1e1e",
				foreground="#ffffff",
			)
			self.output.grid(row=3, column=0, sticky="nsew", padx=6, pady=(0, 6))

			self.status = ttk.Label(self, text="Ready", anchor="w")
			self.status.grid(row=4, column=0, sticky="ew")
			self.bind("<Control-Return>", lambda _event: self._run())

		def _run(self) -> None:
			source = self.editor.get_text()
			if not source.strip():
				self._show_output("Please enter some code to run!")
				return
			report = execute(source, cfg_summary=self.cfg_var.get())
			self._show_output(report.text)
			self.status.configure(text=f"Steps: {report.steps} | Time: {report.duration_ms:.2f} ms")

		def _clear(self) -> None:
			self.editor.set_text("")
			self._show_output("")
			self.status.configure(text="Ready")

		def _show_output(self, text: str) -> None:
			self.output.configure(state="normal")
			self.output.delete("1.0", tk.END)
			self.output.insert("1.0", text)
			self.output.configure(state="disabled")

		def _open_file(self) -> None:
			path = filedialog.askopenfilename(
				title="Open source file",
				filetypes=[("Source Files", "*.txt *.mini *.code"), ("All", "*.*")],
			)
			if not path:
				return
			try:
				content = Path(path).read_text(encoding="utf-8")
			except OSError as e:
				self._show_output(f"Error loading file: {e}")
				return
			self.editor.set_text(content)


def _highlight_tag(token: Token) -> Optional[str]:
	if token.kind in KEYWORDS.values():
		return "keyword"
	if token.kind == TokenKind.INT:
		return "literal"
	if token.kind == TokenKind.ID:
		return "identifier"
	return None


def launch_gui() -> None:
	if tk is None:
		raise RuntimeError("Tkinter is not available in this environment. Run without --gui or use the FastAPI web app.")
	app = InterpreterApp()  # type: ignore[call-arg]
	app.mainloop()


# ---------------------------------------------------------------------------
# Command line


def create_arg_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(
		prog="mini-interpreter",
		description="Run a mini-language program and print its output.",
	)
	parser.add_argument("source", nargs="?", help="source file to run (defaults to the built-in demo)")
	parser.add_argument("--cfg", action="store_true", help="print a control-flow-graph summary per function")
	parser.add_argument("--max-steps", type=int, default=None, help="abort after this many executed statements")
	parser.add_argument("--gui", action="store_true", help="open the desktop editor instead")
	return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
	args = create_arg_parser().parse_args(argv)
	if args.gui:
		launch_gui()
		return 0

	if args.source:
		source = Path(args.source).read_text(encoding="utf-8")
	else:
		print("Usage: mini-interpreter <sourcefile>")
		print("No file provided; running built-in demo.\n")
		source = demo_program()

	report = execute(source, cfg_summary=args.cfg, max_steps=args.max_steps)
	sys.stdout.write(report.text)
	return 1 if report.error is not None else 0


if __name__ == "__main__":
	sys.exit(main())
