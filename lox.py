import sys
from pathlib import Path

from lox import ScriptRunner

# A basic input prompt.
def read_line(prompt: str) -> str:
    sys.stdout.write(prompt)
    sys.stdout.flush()
    return sys.stdin.readline()

def run_script_file(file_path: str):
    """Run a Lox script file non-interactively and exit with appropriate status."""
    runner = ScriptRunner(on_print=print)
    p = Path(file_path)
    try:
        source = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    result = runner.handle_script(source)
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
        raise SystemExit(1)

def main():
    """Run a script file when provided, otherwise start the interactive REPL."""
    if len(sys.argv) > 1:
        arg = sys.argv[1]
        if not arg.startswith("-"):
            run_script_file(arg)
            return

    print("Lox REPL v0.1")
    print("Type 'exit' or press Ctrl+D to quit.")

    # One runner for the session so globals carry over between lines
    runner = ScriptRunner(on_print=print)

    while True:
        try:
            raw = read_line("> ")
            if raw == "":
                raise EOFError
            line = raw.strip()

            if not line:
                continue
            if line == "exit":
                break

            result = runner.handle_script(line)
            if result.status == 'error':
                print(result.format_error(), file=sys.stderr)

        except EOFError:
            print("\nExiting.")
            break

if __name__ == "__main__":
    # Each Lox call costs several Python frames
    sys.setrecursionlimit(5000)
    try:
        main()
    except KeyboardInterrupt:
        print("\nExiting.")
