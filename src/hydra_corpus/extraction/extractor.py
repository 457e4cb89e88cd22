"""Fixture extraction: Anchor program source -> ``Fixture`` record.

Pipeline: tokenize -> scan markers -> locate program module, instructions and
``#[derive(Accounts)]`` structs -> attribute markers to instructions.

Attribution rules:
    - a marker inside an instruction's signature or body belongs to it
    - a marker in the comment/attribute block directly above ``pub fn``
      belongs to that instruction
    - anything else is an UnattributedMarker issue

Structural problems are returned as ``ExtractionIssue`` values on the
fixture; this module never raises for malformed fixture text.
"""
from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import Dict, List, Optional, Sequence, Tuple

from ..corpus.models import (
    AccountParam,
    Argument,
    ExtractionIssue,
    Fixture,
    Instruction,
    IssueKind,
)
from ..corpus.partition import PartitionPolicy, classify
from ..errors import UnrecognizedGroup
from .markers import Marker, scan_markers
from .tokenizer import Token, TokenKind, tokenize

logger = logging.getLogger(__name__)

_OPEN = {"(": ")", "[": "]", "{": "}", "<": ">"}


def _match_close(tokens: Sequence[Token], open_idx: int) -> int:
    """Index of the bracket closing ``tokens[open_idx]`` (or len(tokens) if unbalanced)."""
    opener = tokens[open_idx].text
    closer = _OPEN[opener]
    depth = 0
    for j in range(open_idx, len(tokens)):
        tok = tokens[j]
        if tok.kind is not TokenKind.PUNCT:
            continue
        if tok.text == opener:
            depth += 1
        elif tok.text == closer:
            # '->' is not a closing angle bracket
            if closer == ">" and j > 0 and tokens[j - 1].is_punct("-"):
                continue
            depth -= 1
            if depth == 0:
                return j
    return len(tokens)


def _split_top_level(tokens: Sequence[Token], sep: str = ",") -> List[List[Token]]:
    # angle brackets only count outside (), [] and {}: `#[account(constraint = a < b)]`
    parts: List[List[Token]] = [[]]
    depth = 0
    angle = 0
    for idx, tok in enumerate(tokens):
        if tok.kind is TokenKind.PUNCT:
            if tok.text in "([{":
                depth += 1
            elif tok.text in ")]}":
                depth -= 1
            elif depth == 0 and tok.text == "<":
                angle += 1
            elif depth == 0 and tok.text == ">" and not (idx > 0 and tokens[idx - 1].is_punct("-")):
                angle = max(angle - 1, 0)
            elif tok.text == sep and depth == 0 and angle == 0:
                parts.append([])
                continue
        parts[-1].append(tok)
    return [p for p in parts if p]


def _render(tokens: Sequence[Token]) -> str:
    """Render a token run back to compact source text (e.g. ``Vec<u8>``, ``&'a mut T``)."""
    wordlike = (TokenKind.IDENT, TokenKind.NUMBER, TokenKind.LIFETIME)
    out = []
    prev: Optional[Token] = None
    for tok in tokens:
        if prev is not None and (
            (prev.kind in wordlike and tok.kind in wordlike) or prev.is_punct(",")
        ):
            out.append(" ")
        out.append(tok.text)
        prev = tok
    return "".join(out)


def _skip_attributes(code: Sequence[Token]) -> List[Token]:
    """Drop ``#[...]`` attribute groups and visibility qualifiers."""
    out: List[Token] = []
    i = 0
    while i < len(code):
        tok = code[i]
        if tok.is_punct("#") and i + 1 < len(code) and code[i + 1].is_punct("["):
            i = _match_close(code, i + 1) + 1
            continue
        if tok.is_ident("pub"):
            i += 1
            if i < len(code) and code[i].is_punct("("):
                i = _match_close(code, i) + 1
            continue
        out.append(tok)
        i += 1
    return out


def _parse_named(part: Sequence[Token]) -> Optional[Tuple[str, List[Token]]]:
    """Parse ``[mut] name: Type`` into (name, type tokens)."""
    part = _skip_attributes(part)
    if part and part[0].is_ident("mut"):
        part = part[1:]
    if len(part) < 3 or not part[1].is_punct(":") or part[0].kind is not TokenKind.IDENT:
        return None
    return part[0].text, list(part[2:])


def _context_struct(type_tokens: Sequence[Token]) -> Optional[str]:
    """``Context<'_, '_, 'info, Foo<'info>>`` -> ``Foo``."""
    if not type_tokens or not type_tokens[0].is_ident("Context"):
        return None
    if len(type_tokens) < 2 or not type_tokens[1].is_punct("<"):
        return None
    close = _match_close(type_tokens, 1)
    args = _split_top_level(type_tokens[2:close])
    if not args:
        return None
    for tok in args[-1]:
        if tok.kind is TokenKind.IDENT:
            return tok.text
    return None


def _parse_accounts_structs(code: Sequence[Token]) -> Dict[str, Tuple[AccountParam, ...]]:
    structs: Dict[str, Tuple[AccountParam, ...]] = {}
    i = 0
    while i < len(code):
        if not (code[i].is_punct("#") and i + 1 < len(code) and code[i + 1].is_punct("[")):
            i += 1
            continue
        close = _match_close(code, i + 1)
        attr = code[i + 2:close]
        i = close + 1
        if not (attr and attr[0].is_ident("derive") and any(t.is_ident("Accounts") for t in attr)):
            continue

        # skip further attributes / visibility up to `struct Name`
        j = i
        while j < len(code) and not code[j].is_ident("struct"):
            if code[j].is_punct("{") or code[j].is_punct(";"):
                break
            j += 1
        if j + 1 >= len(code) or not code[j].is_ident("struct"):
            continue
        name = code[j + 1].text
        k = j + 2
        if k < len(code) and code[k].is_punct("<"):
            k = _match_close(code, k) + 1
        fields: List[AccountParam] = []
        if k < len(code) and code[k].is_punct("{"):
            body_close = _match_close(code, k)
            for part in _split_top_level(code[k + 1:body_close]):
                parsed = _parse_named(part)
                if parsed:
                    fields.append(AccountParam(name=parsed[0], type=_render(parsed[1])))
            k = body_close + 1
        structs[name] = tuple(fields)
        i = k
    return structs


class _InstructionSpan:
    __slots__ = ("name", "line", "attach_start", "end", "params")

    def __init__(self, name: str, line: int, attach_start: int, end: int, params: List[List[Token]]):
        self.name = name
        self.line = line
        self.attach_start = attach_start
        self.end = end
        self.params = params


def _find_program_module(tokens: Sequence[Token]) -> Optional[Tuple[Optional[str], int, int]]:
    """Locate the ``#[program]`` module; fall back to the first ``mod`` with a ``pub fn``.

    Returns (module name, open-brace index, close-brace index) into ``tokens``.
    """
    candidates: List[Tuple[bool, Optional[str], int, int]] = []
    pending_program = False
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        if tok.is_comment:
            i += 1
            continue
        if tok.is_punct("#") and i + 1 < len(tokens) and tokens[i + 1].is_punct("["):
            close = _match_close(tokens, i + 1)
            inner = [t for t in tokens[i + 2:close] if not t.is_comment]
            if len(inner) == 1 and inner[0].is_ident("program"):
                pending_program = True
            i = close + 1
            continue
        if tok.is_ident("mod") and i + 2 < len(tokens) and tokens[i + 2].is_punct("{"):
            close = _match_close(tokens, i + 2)
            candidates.append((pending_program, tokens[i + 1].text, i + 2, close))
            pending_program = False
            i = close + 1
            continue
        if not tok.is_ident("pub"):
            pending_program = False
        i += 1

    for is_program, name, open_idx, close in candidates:
        if is_program:
            return name, open_idx, close
    for _, name, open_idx, close in candidates:
        body = tokens[open_idx:close]
        if any(t.is_ident("pub") and k + 1 < len(body) and body[k + 1].is_ident("fn") for k, t in enumerate(body)):
            return name, open_idx, close
    return None


def _attach_start(tokens: Sequence[Token], pub_idx: int) -> int:
    """First index of the comment/attribute block immediately above ``pub fn``."""
    j = pub_idx - 1
    while j >= 0:
        tok = tokens[j]
        if tok.is_comment:
            j -= 1
            continue
        if tok.is_punct("]"):
            # walk back to the matching '[' and its '#'
            depth = 0
            k = j
            while k >= 0:
                if tokens[k].is_punct("]"):
                    depth += 1
                elif tokens[k].is_punct("["):
                    depth -= 1
                    if depth == 0:
                        break
                k -= 1
            if k > 0 and tokens[k - 1].is_punct("#"):
                j = k - 2
                continue
        break
    return j + 1


def _find_instructions(tokens: Sequence[Token], open_idx: int, close_idx: int) -> List[_InstructionSpan]:
    spans: List[_InstructionSpan] = []
    i = open_idx + 1
    while i < close_idx:
        tok = tokens[i]
        if tok.kind is TokenKind.PUNCT and tok.text in ("{", "(", "["):
            # nested item body (impl, const block, ...) - not an instruction
            i = _match_close(tokens, i) + 1
            continue
        if not tok.is_ident("pub"):
            i += 1
            continue

        # `pub fn name(...) -> T { ... }`, skipping comments between tokens
        code_idx = [k for k in range(i, min(close_idx, i + 8)) if not tokens[k].is_comment]
        if len(code_idx) < 3 or not tokens[code_idx[1]].is_ident("fn"):
            i += 1
            continue
        fn_tok = tokens[code_idx[1]]
        name_tok = tokens[code_idx[2]]

        k = code_idx[2] + 1
        while k < close_idx and not tokens[k].is_punct("("):
            if tokens[k].is_punct("<"):
                k = _match_close(tokens, k)
            k += 1
        if k >= close_idx:
            break
        params_close = _match_close(tokens, k)
        params = _split_top_level([t for t in tokens[k + 1:params_close] if not t.is_comment])

        b = params_close + 1
        while b < close_idx and not tokens[b].is_punct("{"):
            if tokens[b].is_punct(";"):
                break
            b += 1
        if b >= close_idx or not tokens[b].is_punct("{"):
            i = b + 1
            continue
        body_close = _match_close(tokens, b)

        spans.append(_InstructionSpan(
            name=name_tok.text,
            line=fn_tok.line,
            attach_start=_attach_start(tokens, i),
            end=body_close,
            params=params,
        ))
        i = body_close + 1
    return spans


def _program_id(code: Sequence[Token]) -> Optional[str]:
    for i, tok in enumerate(code[:-3]):
        if tok.is_ident("declare_id") and code[i + 1].is_punct("!") and code[i + 2].is_punct("("):
            lit = code[i + 3]
            if lit.kind is TokenKind.STRING:
                return lit.text.strip('"')
    return None


def _repo_id(path: str) -> str:
    parts = PurePosixPath(path).parts
    if len(parts) >= 3:
        return parts[1]
    return PurePosixPath(path).stem


def _attribute(markers: List[Marker], spans: List[_InstructionSpan]) -> List[Marker]:
    attributed = []
    for marker in markers:
        owner = None
        for idx, span in enumerate(spans):
            if span.attach_start <= marker.token_index <= span.end:
                owner = idx
                break
        attributed.append(Marker(
            token_index=marker.token_index,
            line=marker.line,
            class_id=marker.class_id,
            text=marker.text,
            instruction_index=owner,
        ))
    return attributed


def extract_fixture(source: str, path: str, *, policy: PartitionPolicy = classify) -> Fixture:
    """Extract a ``Fixture`` from fixture source text.

    Args:
        source: Rust source of the program module
        path: Corpus-relative posix path (its first segment is the partition group)
        policy: Partition classification policy

    Returns:
        A frozen Fixture; structural problems are listed in ``fixture.issues``
    """
    path = path.replace("\\", "/")
    tokens = tokenize(source)
    code = [t for t in tokens if not t.is_comment]
    issues: List[ExtractionIssue] = []

    partition = None
    try:
        partition = policy(path)
    except UnrecognizedGroup as e:
        issues.append(ExtractionIssue(kind=IssueKind.UNRECOGNIZED_GROUP, message=str(e)))

    module = _find_program_module(tokens)
    spans: List[_InstructionSpan] = []
    module_name = None
    if module is not None:
        module_name, open_idx, close_idx = module
        spans = _find_instructions(tokens, open_idx, close_idx)

    markers = _attribute(scan_markers(tokens), spans)
    by_instruction: Dict[int, List[Marker]] = {}
    for marker in markers:
        if marker.is_malformed:
            issues.append(ExtractionIssue(
                kind=IssueKind.MALFORMED_MARKER,
                message=f"Malformed marker '{marker.text}' (expected HYDRA_VULN:<[a-z_]+>)",
                line=marker.line,
            ))
        elif marker.instruction_index is None:
            issues.append(ExtractionIssue(
                kind=IssueKind.UNATTRIBUTED_MARKER,
                message=f"Marker HYDRA_VULN:{marker.class_id} is not inside or directly above an instruction",
                line=marker.line,
                class_ids=(marker.class_id,),
            ))
        else:
            by_instruction.setdefault(marker.instruction_index, []).append(marker)

    accounts = _parse_accounts_structs(code)
    instructions = []
    for idx, span in enumerate(spans):
        context_struct = None
        arguments = []
        for part in span.params:
            parsed = _parse_named(part)
            if parsed is None:
                continue
            name, type_tokens = parsed
            struct = _context_struct(type_tokens)
            if struct is not None and context_struct is None:
                context_struct = struct
            else:
                arguments.append(Argument(name=name, type=_render(type_tokens)))

        own = by_instruction.get(idx, [])
        class_id = None
        marker_line = None
        if len(own) > 1:
            issues.append(ExtractionIssue(
                kind=IssueKind.DUPLICATE_TAG,
                message=f"Instruction '{span.name}' carries {len(own)} markers: "
                        + ", ".join(m.class_id for m in own),
                instruction=span.name,
                line=own[1].line,
                class_ids=tuple(m.class_id for m in own),
            ))
        elif own:
            class_id = own[0].class_id
            marker_line = own[0].line

        instructions.append(Instruction(
            name=span.name,
            index=idx,
            line=span.line,
            accounts_struct=context_struct,
            accounts=accounts.get(context_struct, ()) if context_struct else (),
            arguments=tuple(arguments),
            class_id=class_id,
            marker_line=marker_line,
        ))

    logger.debug(
        "Extracted %s: %d instructions, %d markers, %d issues",
        path, len(instructions), len(markers), len(issues),
    )

    return Fixture(
        path=path,
        repo_id=_repo_id(path),
        program_id=_program_id(code),
        module=module_name,
        instructions=tuple(instructions),
        partition=partition,
        issues=tuple(sorted(issues, key=lambda x: (x.line or 0, x.kind.value))),
    )
