"""
Categories, languages and the code pattern catalog.

Category and language keys are open sets: well-known values map onto the
``Category`` / ``Language`` enums, anything else is kept verbatim and buckets
to ``OTHER`` wherever a closed view is needed (priority lookups, reports).
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Pattern, Tuple


class Category(str, Enum):
    """Well-known example categories."""

    COMPONENTS = "components"
    SERVICES = "services"
    DIRECTIVES = "directives"
    PIPES = "pipes"
    ROUTING = "routing"
    FORMS = "forms"
    TESTING = "testing"
    PERFORMANCE = "performance"
    ARCHITECTURE = "architecture"
    CONSTITUTIONAL = "constitutional"
    OTHER = "other"

    @classmethod
    def bucket(cls, value: str) -> "Category":
        try:
            return cls(normalize_category(value))
        except ValueError:
            return cls.OTHER


class Language(str, Enum):
    """Well-known code block languages."""

    TYPESCRIPT = "typescript"
    JAVASCRIPT = "javascript"
    HTML = "html"
    CSS = "css"
    SCSS = "scss"
    JSON = "json"
    YAML = "yaml"
    BASH = "bash"
    PYTHON = "python"
    TEXT = "text"
    OTHER = "other"

    @classmethod
    def bucket(cls, value: str) -> "Language":
        try:
            return cls(normalize_language(value))
        except ValueError:
            return cls.OTHER


_LANGUAGE_ALIASES = {
    "ts": "typescript",
    "tsx": "typescript",
    "js": "javascript",
    "jsx": "javascript",
    "mjs": "javascript",
    "sh": "bash",
    "shell": "bash",
    "zsh": "bash",
    "console": "bash",
    "py": "python",
    "python3": "python",
    "yml": "yaml",
    "htm": "html",
    "plaintext": "text",
    "txt": "text",
}

# Used when neither the caller nor the content rules name a category
LANGUAGE_DEFAULT_CATEGORY = {
    "typescript": Category.COMPONENTS,
    "javascript": Category.COMPONENTS,
    "html": Category.COMPONENTS,
    "css": Category.COMPONENTS,
    "scss": Category.COMPONENTS,
    "json": Category.ARCHITECTURE,
    "yaml": Category.ARCHITECTURE,
    "bash": Category.ARCHITECTURE,
}

DEFAULT_CATEGORY_PRIORITY: Dict[str, float] = {
    Category.CONSTITUTIONAL.value: 3.0,
    Category.ARCHITECTURE.value: 2.0,
    Category.PERFORMANCE.value: 2.0,
    Category.SERVICES.value: 1.5,
    Category.COMPONENTS.value: 1.0,
    Category.DIRECTIVES.value: 1.0,
    Category.PIPES.value: 1.0,
    Category.ROUTING.value: 1.0,
    Category.FORMS.value: 1.0,
    Category.TESTING.value: 0.5,
    Category.OTHER.value: 0.0,
}


def normalize_language(language: Optional[str]) -> str:
    """Lowercase a language name and resolve common aliases."""
    value = (language or "").strip().lower()
    if not value:
        return Language.TEXT.value
    return _LANGUAGE_ALIASES.get(value, value)


def normalize_category(category: str) -> str:
    """Lowercase a category into a dash-separated id."""
    value = re.sub(r"[^a-z0-9]+", "-", (category or "").strip().lower())
    return value.strip("-")


def category_priority(
    categories, overrides: Optional[Dict[str, float]] = None
) -> float:
    """Highest priority among ``categories``; unknown ones count as ``other``."""
    table = dict(DEFAULT_CATEGORY_PRIORITY)
    if overrides:
        table.update({normalize_category(k): float(v) for k, v in overrides.items()})

    best = 0.0
    for category in categories:
        key = normalize_category(category)
        if key not in table:
            key = Category.OTHER.value
        best = max(best, table[key])
    return best


def auto_categorize(code: str, language: str, constitutional: bool = False) -> List[str]:
    """Infer categories from code content, falling back to the language default."""
    text = code.lower()
    categories: List[str] = []

    if "@component" in text or "component.ts" in text:
        categories.append(Category.COMPONENTS.value)
    if "@injectable" in text or "service.ts" in text:
        categories.append(Category.SERVICES.value)
    if "@directive" in text or "directive.ts" in text:
        categories.append(Category.DIRECTIVES.value)
    if "@pipe" in text or "pipe.ts" in text:
        categories.append(Category.PIPES.value)
    if "router" in text or "routes" in text or "routerlink" in text:
        categories.append(Category.ROUTING.value)
    if "formgroup" in text or "formcontrol" in text or "validators" in text:
        categories.append(Category.FORMS.value)
    if re.search(r"\b(describe|it|expect|test)\(", text):
        categories.append(Category.TESTING.value)
    if "onpush" in text or "trackby" in text:
        categories.append(Category.PERFORMANCE.value)
    if "standalone: true" in text or "signal(" in text or constitutional:
        categories.append(Category.CONSTITUTIONAL.value)

    if categories:
        return categories

    default = LANGUAGE_DEFAULT_CATEGORY.get(normalize_language(language), Category.OTHER)
    return [default.value]


def auto_tag(code: str) -> List[str]:
    """Infer tags from code content."""
    text = code.lower()
    tags: List[str] = []

    if "standalone: true" in text:
        tags.append("standalone")
    if "signal(" in text or "computed(" in text:
        tags.append("signals")
    if "onpush" in text:
        tags.append("onpush")
    if "observable" in text or "subscribe" in text:
        tags.extend(["reactive", "rxjs"])
    if "mat-" in text or "angular/material" in text:
        tags.append("material")
    if "@angular/animations" in text:
        tags.append("animation")
    if "loadchildren" in text or "lazy" in text:
        tags.append("lazy-loading")
    if "canactivate" in text or "guard" in text:
        tags.append("guard")
    if "interceptor" in text:
        tags.append("interceptor")
    if "validators" in text or "validation" in text:
        tags.append("validation")
    if "aria-" in text or "accessibility" in text:
        tags.append("accessibility")
    if "best practice" in text:
        tags.append("best-practice")

    return tags


# Identifiers worth lifting out of source code as keywords
CODE_KEYWORD_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"@(Component|Injectable|Directive|Pipe|NgModule)\b"),
    re.compile(r"\b(signal|computed|effect)\s*\("),
    re.compile(r"\b(FormControl|FormGroup|FormBuilder|Validators)\b"),
    re.compile(r"\b(Observable|Subject|BehaviorSubject|ReplaySubject)\b"),
    re.compile(r"\b(OnInit|OnDestroy|OnChanges|AfterViewInit)\b"),
    re.compile(r"\b(HttpClient|Router|ActivatedRoute)\b"),
)


def extract_code_keywords(code: str) -> List[str]:
    """Return the framework identifiers used in ``code``, lowercased and de-duplicated."""
    found: List[str] = []
    for pattern in CODE_KEYWORD_PATTERNS:
        for match in pattern.finditer(code):
            keyword = match.group(1).lower()
            if keyword not in found:
                found.append(keyword)
    return found


@dataclass(frozen=True)
class CodePattern:
    """A named regex describing a common code idiom."""

    name: str
    description: str
    pattern: str
    category: str
    difficulty: int
    examples: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def regex(self) -> Pattern[str]:
        return _compiled(self.pattern)


_PATTERN_CACHE: Dict[str, Pattern[str]] = {}


def _compiled(source: str) -> Pattern[str]:
    if source not in _PATTERN_CACHE:
        _PATTERN_CACHE[source] = re.compile(source)
    return _PATTERN_CACHE[source]


PATTERN_CATALOG: Tuple[CodePattern, ...] = (
    CodePattern(
        name="Component Declaration",
        description="Find Angular component decorators",
        pattern=r"@Component\s*\(\s*\{[\s\S]*?\}\s*\)",
        category=Category.COMPONENTS.value,
        difficulty=1,
        examples=("@Component({...})", '@Component({ selector: "app-*" })'),
    ),
    CodePattern(
        name="Injectable Service",
        description="Find Angular service declarations",
        pattern=r"@Injectable\s*\(\s*\{[\s\S]*?\}\s*\)",
        category=Category.SERVICES.value,
        difficulty=1,
        examples=('@Injectable({ providedIn: "root" })',),
    ),
    CodePattern(
        name="Signal Usage",
        description="Find Angular signals implementation",
        pattern=r"signal\s*\(\s*[^)]*\s*\)|computed\s*\(\s*[^)]*\s*\)",
        category=Category.CONSTITUTIONAL.value,
        difficulty=2,
        examples=("signal(initialValue)", "computed(() => ...)"),
    ),
    CodePattern(
        name="RxJS Operators",
        description="Find RxJS operator usage",
        pattern=(
            r"\.(pipe|map|filter|switchMap|mergeMap|concatMap|catchError|tap"
            r"|takeUntil|startWith|combineLatest)\s*\("
        ),
        category=Category.SERVICES.value,
        difficulty=3,
        examples=(".pipe(map(...))", ".switchMap(...)"),
    ),
    CodePattern(
        name="Form Controls",
        description="Find reactive form implementations",
        pattern=r"FormControl|FormGroup|FormBuilder|Validators\.",
        category=Category.FORMS.value,
        difficulty=2,
        examples=("new FormControl()", "Validators.required"),
    ),
    CodePattern(
        name="Route Configuration",
        description="Find routing configurations",
        pattern=r"Routes\s*=|RouterModule\.(forRoot|forChild)|loadChildren\s*:",
        category=Category.ROUTING.value,
        difficulty=2,
        examples=("Routes = [...]", "loadChildren: () => ..."),
    ),
    CodePattern(
        name="OnPush Strategy",
        description="Find OnPush change detection usage",
        pattern=r"ChangeDetectionStrategy\.OnPush",
        category=Category.PERFORMANCE.value,
        difficulty=3,
        examples=("ChangeDetectionStrategy.OnPush",),
    ),
    CodePattern(
        name="Dependency Injection",
        description="Find dependency injection patterns",
        pattern=r"inject\s*\(\s*\w+\s*\)|constructor\s*\([^)]*\)",
        category=Category.SERVICES.value,
        difficulty=2,
        examples=("inject(ServiceName)", "constructor(private service: ...)"),
    ),
)


def get_pattern(name: str) -> Optional[CodePattern]:
    for pattern in PATTERN_CATALOG:
        if pattern.name == name:
            return pattern
    return None


def detect_patterns(code: str) -> List[str]:
    """Names of catalog patterns present in ``code``."""
    return [p.name for p in PATTERN_CATALOG if p.regex.search(code)]
