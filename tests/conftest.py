"""Shared pytest fixtures for Huginn tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import pytest
import yaml

from huginn.core.indexer import Index, build_index

COUNTER_COMPONENT = """import { Component, signal } from '@angular/core';

@Component({
  selector: 'app-counter',
  standalone: true,
  template: `<button (click)="increment()">{{ count() }}</button>`
})
export class CounterComponent {
  count = signal(0);
  increment() { this.count.update(v => v + 1); }
}"""

USER_SERVICE = """@Injectable({ providedIn: 'root' })
export class UserService {
  private http = inject(HttpClient);
  // Load all users from the API
  users$ = this.http.get<User[]>('/api/users').pipe(map(users => users));
}"""

LOGIN_FORM = """form = new FormGroup({
  email: new FormControl('', Validators.required),
});"""

CARD_STYLES = """.card {
  display: flex;
}"""


@pytest.fixture()
def project_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolated project root for tests."""
    monkeypatch.setenv("HUGINN_PROJECT_ROOT", str(tmp_path))
    monkeypatch.delenv("HUGINN_CACHE_DIR", raising=False)
    return tmp_path


@pytest.fixture()
def sample_blocks() -> List[Dict[str, Any]]:
    """Raw code blocks as handed over by content extraction."""
    return [
        {
            "id": "counter",
            "code": COUNTER_COMPONENT,
            "language": "typescript",
            "title": "Signal Counter",
            "description": "Counter component using signals",
        },
        {
            "id": "user-service",
            "code": USER_SERVICE,
            "language": "ts",
            "title": "User Service",
            "description": "Injectable service loading users over HTTP",
        },
        {
            "id": "login-form",
            "code": LOGIN_FORM,
            "language": "typescript",
            "title": "Login Form",
            "description": "Reactive form with validators",
            "tags": ["validation"],
        },
        {
            "id": "card-styles",
            "code": CARD_STYLES,
            "language": "css",
        },
    ]


@pytest.fixture()
def sample_index(sample_blocks: List[Dict[str, Any]]) -> Index:
    return build_index(sample_blocks)


@pytest.fixture()
def sample_docs(project_root: Path) -> Path:
    """Create a small documentation tree with fenced code blocks."""
    docs_dir = project_root / "docs"
    docs_dir.mkdir()

    (docs_dir / "signals.md").write_text(
        "---\n"
        "tags: [signals]\n"
        "---\n"
        "# Signal Counter\n"
        "\n"
        "A counter component built with signals.\n"
        "\n"
        "```typescript\n"
        f"{COUNTER_COMPONENT}\n"
        "```\n",
        encoding="utf-8",
    )

    (docs_dir / "services.md").write_text(
        "# User Service\n"
        "\n"
        "Injectable service loading users over HTTP.\n"
        "\n"
        "```ts\n"
        f"{USER_SERVICE}\n"
        "```\n"
        "\n"
        "## Card styles\n"
        "\n"
        "```css\n"
        f"{CARD_STYLES}\n"
        "```\n",
        encoding="utf-8",
    )

    return docs_dir


@pytest.fixture()
def minimal_config(project_root: Path, sample_docs: Path) -> Path:
    """Write a configuration file pointing to the temporary docs directory."""
    cache_dir = project_root / "cache"
    config: Dict[str, object] = {
        "docs_paths": [str(sample_docs)],
        "file_extensions": [".md"],
        "cache_dir": str(cache_dir),
        "encoding": "utf-8",
        "max_file_size": 1_048_576,
        "search": {"cache": {"enabled": False}},
    }

    config_path = project_root / "config.yaml"
    config_path.write_text(yaml.safe_dump(config), encoding="utf-8")
    return config_path
