from project_maps.core.signatures import extract_signatures, normalize_language, supports
from project_maps.core.signatures.markers import detect_markers, extract_endpoints


PYTHON_SOURCE = '''\
import os
from typing import List
from .models import User as U

__all__ = ["fetch", "Service"]


def fetch(url: str, timeout: int = 5) -> bytes:
    return b""


async def poll():
    pass


def _helper():
    pass


class Service:
    def __init__(self, client):
        self.client = client

    @staticmethod
    def build(name):
        return Service(name)

    async def run(self, job, *args, **kwargs) -> None:
        pass

    def __secret(self):
        pass
'''

JS_SOURCE = """\
import React, { useState } from 'react';
import './styles.css';
const path = require('path');
/* const legacy = require('legacy'); */

export async function fetchUser(id: string, options?: Options): Promise<User> {
  return api.get(id, options);
}

export const getUser = async (id) => {
  return fetchUser(id);
};

const normalize = value => value.trim();

export class UserService {
  constructor(repo) {
    this.repo = repo;
  }

  async findAll() {
    if (this.repo) {
      return this.repo.all();
    }
  }

  static create() {
    return new UserService(null);
  }

  #reset() {
    this.repo = null;
  }
}

export interface User {
  id: string;
}

export type UserId = string;

enum Role { Admin, Member }

export default UserService;

const lazy = () => import('./lazy');
"""


def _by_name(result):
    return {signature.qualified_name: signature for signature in result.signatures}


def test_python_functions_and_methods() -> None:
    result = extract_signatures(PYTHON_SOURCE, "python")
    signatures = _by_name(result)

    fetch = signatures["fetch"]
    assert fetch.kind == "function"
    assert fetch.parameters == ["url: str", "timeout: int = 5"]
    assert fetch.return_type == "bytes"
    assert fetch.line == 8
    assert fetch.is_exported

    assert signatures["poll"].is_async
    assert not signatures["poll"].is_exported
    assert signatures["_helper"].visibility == "protected"

    assert signatures["Service"].kind == "class"
    assert signatures["Service.__init__"].parameters == ["client"]
    assert signatures["Service.build"].is_static
    assert signatures["Service.build"].parameters == ["name"]
    run = signatures["Service.run"]
    assert run.is_async
    assert run.parameters == ["job", "*args", "**kwargs"]
    assert run.return_type == "None"
    assert signatures["Service.__secret"].visibility == "private"
    assert not signatures["Service.__secret"].is_exported


def test_python_exports_follow_dunder_all() -> None:
    result = extract_signatures(PYTHON_SOURCE, "py")

    assert result.exports == ["fetch", "Service"]


def test_python_exports_default_to_public_names() -> None:
    result = extract_signatures("def a():\n    pass\n\ndef _b():\n    pass\n", "python")

    assert result.exports == ["a"]


def test_python_imports() -> None:
    result = extract_signatures(PYTHON_SOURCE, "python")
    imports = [(ref.source, ref.symbols, ref.kind) for ref in result.imports]

    assert imports == [
        ("os", ["os"], "import"),
        ("typing", ["List"], "from"),
        (".models", ["User"], "from"),
    ]


def test_python_syntax_error_is_partial() -> None:
    result = extract_signatures("def ok():\n    pass\n\ndef broken(:\n    pass\n", "python")

    assert "ok" in [signature.name for signature in result.signatures]
    assert result.issues


def test_javascript_imports() -> None:
    result = extract_signatures(JS_SOURCE, "typescript")
    imports = [(ref.source, ref.kind) for ref in result.imports]

    assert imports == [
        ("react", "import"),
        ("./styles.css", "import"),
        ("path", "require"),
        ("./lazy", "dynamic"),
    ]
    assert result.imports[0].symbols == ["React", "useState"]
    # Commented-out code is ignored
    assert "legacy" not in [ref.source for ref in result.imports]


def test_javascript_exports() -> None:
    result = extract_signatures(JS_SOURCE, "typescript")

    assert set(result.exports) == {"default", "UserService", "fetchUser", "getUser", "User", "UserId"}


def test_javascript_signatures() -> None:
    result = extract_signatures(JS_SOURCE, "typescript-react")
    signatures = _by_name(result)

    fetch = signatures["fetchUser"]
    assert fetch.is_async and fetch.is_exported
    assert fetch.parameters == ["id: string", "options?: Options"]
    assert fetch.return_type == "Promise<User>"
    assert fetch.line == 6

    assert signatures["getUser"].is_async
    assert signatures["getUser"].parameters == ["id"]
    assert signatures["normalize"].parameters == ["value"]
    assert not signatures["normalize"].is_exported

    assert signatures["UserService"].kind == "class"
    assert signatures["UserService.findAll"].is_async
    assert signatures["UserService.create"].is_static
    assert signatures["UserService.reset"].visibility == "private"
    # Control flow inside method bodies is not mistaken for methods
    assert "UserService.if" not in signatures

    assert signatures["User"].kind == "interface"
    assert signatures["UserId"].kind == "type"
    assert signatures["Role"].kind == "enum"
    assert not signatures["Role"].is_exported


def test_commonjs_exports() -> None:
    source = "function a() {}\nfunction b() {}\nmodule.exports = { a, b: b };\nexports.c = 1;\n"

    result = extract_signatures(source, "javascript")

    assert result.exports == ["a", "b", "c"]


def test_go_extraction() -> None:
    source = (
        "package users\n\n"
        "import (\n\t\"fmt\"\n\tdb \"github.com/acme/db\"\n)\n\n"
        "type User struct {\n\tName string\n}\n\n"
        "func (u *User) Greet(prefix string) string {\n\treturn fmt.Sprintf(prefix)\n}\n\n"
        "func helper() {}\n"
    )

    result = extract_signatures(source, "go")
    signatures = _by_name(result)

    assert [ref.source for ref in result.imports] == ["fmt", "github.com/acme/db"]
    assert signatures["User.Greet"].kind == "method"
    assert signatures["User.Greet"].return_type == "string"
    assert signatures["User"].kind == "class"
    assert signatures["helper"].visibility == "private"
    assert result.exports == ["User"]


def test_rust_extraction() -> None:
    source = (
        "use std::collections::HashMap;\n"
        "use crate::models::{User, Role};\n"
        "mod routes;\n\n"
        "pub struct Store {}\n\n"
        "impl Store {\n"
        "    pub fn new() -> Self {\n        Store {}\n    }\n"
        "    pub async fn get(&self, id: u32) -> Option<User> {\n        None\n    }\n"
        "}\n\n"
        "fn private_helper() {}\n"
    )

    result = extract_signatures(source, "rs")
    signatures = _by_name(result)

    assert [ref.source for ref in result.imports] == ["std::collections::HashMap", "crate::models", "self::routes"]
    assert result.imports[1].symbols == ["User", "Role"]
    assert signatures["Store.new"].is_static
    assert signatures["Store.get"].is_async
    assert signatures["Store.get"].parameters == ["id: u32"]
    assert not signatures["private_helper"].is_exported
    assert "Store" in result.exports


def test_unsupported_language_yields_empty_result() -> None:
    result = extract_signatures("body { color: red; }", "css")

    assert result.signatures == []
    assert result.issues == []
    assert not supports("css")
    assert supports("tsx")
    assert normalize_language("JSX") == "javascript"


def test_vue_script_block_keeps_line_numbers() -> None:
    source = (
        "<template>\n  <div>{{ msg }}</div>\n</template>\n"
        "<script>\n"
        "export function greet(name) {\n  return name;\n}\n"
        "</script>\n"
    )

    result = extract_signatures(source, "vue")

    assert result.signatures[0].name == "greet"
    assert result.signatures[0].line == 5


def test_express_markers_and_endpoints() -> None:
    source = (
        "const router = express.Router();\n"
        "router.get('/users', list);\n"
        "router.post('/users', create);\n"
    )

    markers = detect_markers(source, "javascript")
    endpoints = extract_endpoints(source, "javascript", markers)

    assert "express-router" in markers
    assert [(ep.method, ep.path, ep.line) for ep in endpoints] == [("GET", "/users", 2), ("POST", "/users", 3)]
    assert endpoints[0].framework == "express"


def test_flask_endpoints_expand_methods() -> None:
    source = (
        "@app.route('/items', methods=['GET', 'POST'])\n"
        "def items():\n"
        "    pass\n"
    )

    markers = detect_markers(source, "python")
    endpoints = extract_endpoints(source, "python", markers)

    assert "flask-route" in markers
    assert [(ep.method, ep.path) for ep in endpoints] == [("GET", "/items"), ("POST", "/items")]


def test_markers_are_language_scoped() -> None:
    python_only = "class User(models.Model):\n    pass\n"

    assert "django-model" in detect_markers(python_only, "python")
    assert "django-model" not in detect_markers(python_only, "javascript")
