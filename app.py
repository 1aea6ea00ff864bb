#!/usr/bin/env python3
from __future__ import annotations

import argparse
import os
import shutil
import signal
import subprocess
import sys
import time
import urllib.error
import urllib.request
from pathlib import Path


ROOT_DIR = Path(__file__).resolve().parent
BACKEND_DIR = ROOT_DIR / "backend"
FRONTEND_DIR = ROOT_DIR / "frontend"
RUNTIME_DIR = ROOT_DIR / ".runtime"
BACKEND_VENV_DIR = RUNTIME_DIR / "backend-venv"


def run_checked(cmd: list[str], cwd: Path | None = None, env: dict[str, str] | None = None) -> None:
    print(f"[setup] {' '.join(cmd)}")
    subprocess.run(cmd, cwd=cwd, env=env, check=True)


def command_exists(command: str) -> bool:
    return shutil.which(command) is not None


def npm_command() -> str:
    return "npm.cmd" if os.name == "nt" else "npm"


def backend_python_executable() -> Path:
    if os.name == "nt":
        return BACKEND_VENV_DIR / "Scripts" / "python.exe"
    return BACKEND_VENV_DIR / "bin" / "python"


def ensure_backend_runtime() -> Path:
    python_path = backend_python_executable()
    if python_path.exists():
        return python_path

    RUNTIME_DIR.mkdir(parents=True, exist_ok=True)
    run_checked([sys.executable, "-m", "venv", str(BACKEND_VENV_DIR)])
    if not python_path.exists():
        raise RuntimeError("Failed to create backend runtime environment.")
    return python_path


def backend_dependencies_installed(python_executable: Path) -> bool:
    check_cmd = [
        str(python_executable),
        "-c",
        "import explorer, flask, flask_sqlalchemy, flask_migrate, flask_cors, dotenv",
    ]
    return subprocess.run(check_cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL).returncode == 0


def ensure_backend_dependencies(python_executable: Path, auto_install: bool) -> None:
    if backend_dependencies_installed(python_executable):
        return

    if not auto_install:
        raise RuntimeError("Backend dependencies are missing. Run: pip install -e .")

    run_checked([str(python_executable), "-m", "pip", "install", "-e", str(ROOT_DIR)])


def ensure_frontend_dependencies(auto_install: bool) -> None:
    npm = npm_command()
    if not command_exists(npm):
        raise RuntimeError("npm is not installed or not in PATH.")

    if (FRONTEND_DIR / "node_modules").exists():
        return

    if not auto_install:
        raise RuntimeError("Frontend dependencies are missing. Run: npm install (in frontend/)")

    run_checked([npm, "install"], cwd=FRONTEND_DIR)


def prepare_database(python_executable: Path, seed_demo: bool) -> None:
    env = os.environ.copy()
    run_checked([str(python_executable), "-m", "flask", "--app", "wsgi:app", "db", "upgrade"], cwd=BACKEND_DIR, env=env)
    env["SEED_DEMO_DATA"] = "true" if seed_demo else "false"
    run_checked([str(python_executable), "seed.py"], cwd=BACKEND_DIR, env=env)


def wait_for_http(url: str, timeout_seconds: int = 30) -> None:
    start = time.time()
    while time.time() - start < timeout_seconds:
        try:
            with urllib.request.urlopen(url, timeout=2) as response:
                if 200 <= response.status < 500:
                    return
        except (urllib.error.URLError, TimeoutError):
            time.sleep(0.4)
    raise RuntimeError(f"Timed out waiting for {url}")


def terminate_processes(processes: list[subprocess.Popen[str]]) -> None:
    for process in processes:
        if process.poll() is None:
            process.terminate()

    deadline = time.time() + 6
    for process in processes:
        if process.poll() is None:
            wait_seconds = max(0, deadline - time.time())
            try:
                process.wait(timeout=wait_seconds)
            except subprocess.TimeoutExpired:
                process.kill()


def start_backend(python_executable: Path, port: int, frontend_port: int) -> subprocess.Popen[str]:
    env = os.environ.copy()
    env["FLASK_DEBUG"] = "0"
    env["PYTHONUNBUFFERED"] = "1"
    env.setdefault("APP_ENV", "development")
    env.setdefault("BASE_URL", f"http://127.0.0.1:{port}")
    env.setdefault("FRONTEND_ORIGINS", f"http://localhost:{frontend_port},http://127.0.0.1:{frontend_port}")
    return subprocess.Popen(
        [
            str(python_executable),
            "-m",
            "flask",
            "--app",
            "wsgi:app",
            "run",
            "--host",
            "127.0.0.1",
            "--port",
            str(port),
        ],
        cwd=BACKEND_DIR,
        env=env,
    )


def start_frontend(port: int, backend_port: int, api_prefix: str) -> subprocess.Popen[str]:
    env = os.environ.copy()
    env["VITE_API_URL"] = f"http://127.0.0.1:{backend_port}{api_prefix}"
    env["FORCE_COLOR"] = "1"
    return subprocess.Popen(
        [npm_command(), "run", "dev", "--", "--host", "127.0.0.1", "--port", str(port), "--strictPort"],
        cwd=FRONTEND_DIR,
        env=env,
    )


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Start the folder explorer (backend, plus frontend when present).")
    parser.add_argument("--backend-port", type=int, default=int(os.environ.get("PORT", "3000")))
    parser.add_argument("--frontend-port", type=int, default=5173)
    parser.add_argument("--backend-only", action="store_true")
    parser.add_argument("--no-seed", action="store_true", help="Apply migrations but skip the demo tree.")
    parser.add_argument("--no-install", action="store_true", help="Do not auto-install missing dependencies.")
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    if not BACKEND_DIR.exists():
        raise RuntimeError("Expected a /backend directory in the project root.")

    with_frontend = not args.backend_only and FRONTEND_DIR.exists()
    api_prefix = os.environ.get("API_PREFIX", "/api/v1").rstrip("/")

    auto_install = not args.no_install
    backend_python = ensure_backend_runtime()
    ensure_backend_dependencies(backend_python, auto_install=auto_install)
    if with_frontend:
        ensure_frontend_dependencies(auto_install=auto_install)

    prepare_database(backend_python, seed_demo=not args.no_seed)

    processes: list[subprocess.Popen[str]] = []
    backend_process: subprocess.Popen[str] | None = None
    frontend_process: subprocess.Popen[str] | None = None

    try:
        backend_process = start_backend(backend_python, port=args.backend_port, frontend_port=args.frontend_port)
        processes.append(backend_process)

        wait_for_http(f"http://127.0.0.1:{args.backend_port}/health", timeout_seconds=35)

        if with_frontend:
            frontend_process = start_frontend(args.frontend_port, args.backend_port, api_prefix)
            processes.append(frontend_process)

        print("")
        print("Folder explorer is running")
        print(f"API:      http://127.0.0.1:{args.backend_port}{api_prefix}")
        if with_frontend:
            print(f"Frontend: http://127.0.0.1:{args.frontend_port}")
        print("Stop with Ctrl+C")
        print("")

        while True:
            if backend_process and backend_process.poll() is not None:
                return backend_process.returncode or 1
            if frontend_process and frontend_process.poll() is not None:
                return frontend_process.returncode or 1
            time.sleep(1)

    except KeyboardInterrupt:
        print("\nStopping folder explorer...")
        return 0
    finally:
        terminate_processes(processes)


if __name__ == "__main__":
    signal.signal(signal.SIGINT, signal.default_int_handler)
    raise SystemExit(main())
