import os


def load_env(path: str = ".env") -> None:
    """Minimal .env loader to populate env defaults (no overrides)."""
    if not os.path.exists(path):
        return
    with open(path, "r", encoding="utf-8") as f:
        for raw in f:
            line = raw.strip()
            if not line or line.startswith('#') or '=' not in line:
                continue
            k, v = line.split('=', 1)
            k = k.strip(); v = v.strip().strip('"').strip("'")
            if k and (k not in os.environ):
                os.environ[k] = v


def append_to_env_file(env_file: str, key: str, value: str) -> None:
    """Append or update a KEY="value" entry in `.env`."""
    lines = []
    if os.path.exists(env_file):
        with open(env_file, 'r', encoding='utf-8') as f:
            lines = f.readlines()

    key_exists = False
    for i, line in enumerate(lines):
        if line.strip().startswith(f"{key}="):
            lines[i] = f'{key}="{value}"\n'
            key_exists = True
            break

    if not key_exists:
        if lines and not lines[-1].endswith("\n"):
            lines[-1] = lines[-1] + "\n"
        lines.append(f'{key}="{value}"\n')

    with open(env_file, 'w', encoding='utf-8') as f:
        f.writelines(lines)
