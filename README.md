# tmplzap

`tmplzap` extends the `{{ }}` template language with **template inheritance**
and compiles the result back into plain `{{define}}` templates that an engine
for that language can execute.

## Blocks and inheritance

A template marks replaceable parts with `{{block}}`:

```
{{define "base"}}
  <html><body>
    {{block "content"}}<p>This is just a placeholder.</p>{{end}}
  </body></html>
{{end}}
```

A second string in `{{define}}` names the template being extended. An
extending template may contain only blocks (and white space between them);
each one replaces the parent's block of the same name:

```
{{define "tutorial" "base"}}
  {{block "content"}}<p>Welcome to the tutorial.</p>{{end}}
{{end}}
```

Chains of any length work (`t3` extends `t2` extends `t1`). A missing parent
or a cycle of parents is reported as a `CompileError`. After inheritance is
resolved, every `{{block}}` is replaced by its content, so the output holds
only actions the plain language knows.

## Usage

```python
import io
from tmplzap.zapper import Zapper

zapper = Zapper().parse_files("base.html", "tutorial.html")
out = io.StringIO()
zapper.zap(out)
print(out.getvalue())
```

`Zapper` methods (all except `zap` return the zapper, so calls chain):

- `parse(text)` — parse templates from a string;
- `parse_files(*filenames)` — parse the named files (UTF-8);
- `parse_glob(pattern)` — parse every file matching a glob pattern, in sorted
  order;
- `delims(left, right)` — use other action delimiters for later parsing
  (an empty string means `{{` or `}}`);
- `funcs(mapping)` — declare extra function names that templates may call;
  the standard builtins (`and`, `call`, `html`, `index`, `js`, `len`, `not`,
  `or`, `print`, `printf`, `println`, `urlquery`) are always known;
- `zap(out)` — resolve inheritance and write every template to a text stream.

Templates that hold nothing but white space are ignored; defining the same
template twice raises `ZapError`.

Errors:

- `tmplzap.zapper.ZapError` — no files given, a glob matching nothing, or a
  duplicated template;
- `tmplzap.parser.ParseError` — a syntax error, with template name and line;
- `tmplzap.compile.CompileError` — a missing parent or recursive inheritance.

## Lower-level pieces

- `tmplzap.lexer` — the tokenizer (`lex`, `Lexer`, `Item`, `ItemType`);
- `tmplzap.nodes` — the parse-tree node classes and `parse_number`;
  `str()` of a node renders it back to template source;
- `tmplzap.parser` — `parse`, `Tree` and `is_empty_tree`;
- `tmplzap.compile` — `compile_tree_set`, which inlines parents and blocks
  in place.

## What it does not do

`tmplzap` only rewrites templates. It does not execute them against data,
escape output or evaluate functions; the names passed to `funcs` are only
checked for existence. There is no command-line tool.

## Running the tests

```
pip install -e .[test]
pytest
```