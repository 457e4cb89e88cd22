import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

GOLDEN_ROOT = Path(__file__).parent.parent / "golden_repos"


def _struct_name(fn_name: str) -> str:
    return "".join(part.capitalize() for part in fn_name.split("_"))


def anchor_program(module, instructions, program_id="Prog1111111111111111111111111111111111111"):
    """Render a minimal Anchor program.

    ``instructions`` is a list of (name, markers) where markers is None, a
    class id, or a list of class ids placed inside the body.
    """
    fns = []
    structs = []
    for name, markers in instructions:
        if markers is None:
            markers = []
        elif isinstance(markers, str):
            markers = [markers]
        struct = _struct_name(name)
        body = "".join(f"        // HYDRA_VULN:{m}\n" for m in markers)
        fns.append(
            f"    pub fn {name}(ctx: Context<{struct}>) -> Result<()> {{\n"
            f"{body}"
            f"        let _ = ctx;\n"
            f"        Ok(())\n"
            f"    }}\n"
        )
        structs.append(f"#[derive(Accounts)]\npub struct {struct} {{}}\n")
    return (
        "use anchor_lang::prelude::*;\n\n"
        f'declare_id!("{program_id}");\n\n'
        "#[program]\n"
        f"pub mod {module} {{\n"
        "    use super::*;\n\n"
        + "\n".join(fns)
        + "}\n\n"
        + "\n".join(structs)
    )


@pytest.fixture
def program():
    return anchor_program


@pytest.fixture
def write_corpus(tmp_path):
    """Write {relative_path: source} into a fresh corpus root and return it."""
    def _write(files):
        root = tmp_path / "corpus"
        for rel, source in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(source, encoding="utf-8")
        return root
    return _write


@pytest.fixture
def golden_root():
    return GOLDEN_ROOT
