"""
Harness Templates
=================
Generates a self-contained Cargo project holding one proptest harness for
a single Anchor instruction.

Every template is a pure function of a frozen TemplateParams value:
same params → byte-identical text. No I/O happens here; the Fuzz Executor
writes the files.

Template selection:
    - SPECIALIZED when the instruction name matches SPECIALIZED_INSTRUCTIONS
      (case-insensitive). The counter template sizes the account for one
      u64 (8 bytes) and distinguishes overflow from validation failures.
    - GENERIC otherwise, parameterized by the literal instruction name,
      with a 32-byte account.

Generated project layout:
    Cargo.toml
    src/lib.rs
    src/<instruction>_fuzz_test.rs
"""
import re
from dataclasses import dataclass, field
from string import Template
from typing import Literal, Optional

from safex.core.constants import SPECIALIZED_INSTRUCTIONS

TemplateKind = Literal["specialized", "generic"]

HARNESS_CRATE_NAME = "anchor_fuzz_tests"
INSTRUCTION_TAG = 0
INTERNAL_BUDGET_SECONDS = 2
ACCOUNT_LAMPORTS = 1_000_000


# ---------------------------------------------------------------------------
# Harness Spec
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class HarnessSpec:
    instruction_name: str
    template_kind: TemplateKind


def resolve_harness_spec(instruction_name: str) -> HarnessSpec:
    """Pick the template for an instruction name (case-insensitive match)."""
    if instruction_name.lower() in SPECIALIZED_INSTRUCTIONS:
        return HarnessSpec(instruction_name=instruction_name, template_kind="specialized")
    return HarnessSpec(instruction_name=instruction_name, template_kind="generic")


def rust_identifier(name: str) -> str:
    """Turn an instruction name into a usable Rust identifier / file stem."""
    ident = re.sub(r"\W", "_", name.strip())
    if not ident or ident[0].isdigit():
        ident = f"_{ident}"
    return ident


# ---------------------------------------------------------------------------
# Template Parameters
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class RejectionRule:
    """Reject the generated case when the error text contains any needle."""
    needles: tuple[str, ...]
    reason: str
    log_label: str


@dataclass(frozen=True)
class TemplateParams:
    instruction_name: str
    identifier: str
    program_name: str
    account_binding: str
    account_space: int
    account_space_comment: str
    payload_type: str = "u64"
    rejections: tuple[RejectionRule, ...] = field(default_factory=tuple)


_COUNTER_REJECTIONS = (
    RejectionRule(("overflow",), "Overflow detected", "overflow error"),
    RejectionRule(("account validation failed",), "Validation failed", "validation error"),
)

_GENERIC_REJECTIONS = (
    RejectionRule(("overflow", "underflow"), "Overflow detected", "arithmetic error"),
    RejectionRule(("account validation failed",), "Validation failed", "validation error"),
)


def build_params(spec: HarnessSpec, program_name: Optional[str] = None) -> TemplateParams:
    if spec.template_kind == "specialized":
        return TemplateParams(
            instruction_name=spec.instruction_name.lower(),
            identifier=rust_identifier(spec.instruction_name.lower()),
            program_name=program_name or "counter_program",
            account_binding="counter",
            account_space=8,
            account_space_comment="space for one u64 counter",
            rejections=_COUNTER_REJECTIONS,
        )
    return TemplateParams(
        instruction_name=spec.instruction_name,
        identifier=rust_identifier(spec.instruction_name),
        program_name=program_name or "anchor_program",
        account_binding="account",
        account_space=32,
        account_space_comment="generic account space",
        rejections=_GENERIC_REJECTIONS,
    )


# ---------------------------------------------------------------------------
# Rust Sources
# ---------------------------------------------------------------------------
_TEST_MODULE = Template('''\
// Generated property-based fuzz harness for instruction `$instruction_name`.
#[cfg(test)]
mod tests {
    use proptest::prelude::*;
    use solana_program_test::*;
    use solana_sdk::{
        account::Account,
        instruction::{AccountMeta, Instruction},
        pubkey::Pubkey,
        signature::Keypair,
        signer::Signer,
        transaction::Transaction,
    };
    use std::time::{Duration, Instant};

    const INSTRUCTION: &str = "$instruction_name";
    const INSTRUCTION_TAG: u8 = $instruction_tag;
    const ACCOUNT_SPACE: usize = $account_space; // $account_space_comment

    proptest! {
        #[test]
        fn test_${identifier}_fuzz(value in 0..$payload_type::MAX) {
            let runtime = tokio::runtime::Runtime::new().unwrap();
            runtime.block_on(async {
                let program_id = Pubkey::new_unique();
                let $account_binding = Keypair::new();
                let user = Keypair::new();

                let mut program_test = ProgramTest::new("$program_name", program_id, None);
                program_test.add_account(
                    $account_binding.pubkey(),
                    Account {
                        lamports: $lamports,
                        data: vec![0; ACCOUNT_SPACE],
                        owner: program_id,
                        ..Account::default()
                    },
                );

                let (mut banks_client, payer, recent_blockhash) = program_test.start().await;

                let mut data = vec![INSTRUCTION_TAG];
                data.extend_from_slice(&value.to_le_bytes());

                let mut transaction = Transaction::new_with_payer(
                    &[Instruction {
                        program_id,
                        accounts: vec![
                            AccountMeta::new($account_binding.pubkey(), false),
                            AccountMeta::new_readonly(user.pubkey(), true),
                        ],
                        data,
                    }],
                    Some(&payer.pubkey()),
                );
                transaction.sign(&[&payer, &user], recent_blockhash);

                let start = Instant::now();
                let budget = Duration::from_secs($internal_budget);

                while start.elapsed() < budget {
                    match banks_client.process_transaction(transaction.clone()).await {
                        Ok(_) => return Ok(()),
                        Err(e) => {
                            let message = e.to_string();
$rejections
                        }
                    }
                }

                Err(TestCaseError::reject("Test timed out"))
            })?;
        }
    }
}
''')

_REJECTION = Template('''\
                            if $condition {
                                println!("[{}] Found $log_label: {}", INSTRUCTION, message);
                                return Err(TestCaseError::reject("$reason"));
                            }''')

_MANIFEST = Template('''\
[package]
name = "$crate_name"
version = "0.1.0"
edition = "2021"

[dependencies]
solana-program = "1.16"
solana-program-test = "1.16"
solana-sdk = "1.16"
proptest = "1.2"
tokio = { version = "1", features = ["rt-multi-thread", "macros"] }
anchor-lang = { version = "0.28.0", optional = true }

[lib]
name = "$crate_name"
path = "src/lib.rs"

[features]
default = ["anchor"]
anchor = ["anchor-lang"]
test-sbf = []
''')

_LIB = Template('''\
// Fuzz test harness
#[allow(warnings)]
mod $module_name;
''')


def render_rejections(rules: tuple[RejectionRule, ...]) -> str:
    blocks = []
    for rule in rules:
        condition = " || ".join(f'message.contains("{needle}")' for needle in rule.needles)
        blocks.append(_REJECTION.substitute(
            condition=condition,
            log_label=rule.log_label,
            reason=rule.reason,
        ))
    return "\n".join(blocks)


def render_test_module(params: TemplateParams) -> str:
    return _TEST_MODULE.substitute(
        instruction_name=params.instruction_name,
        identifier=params.identifier,
        instruction_tag=INSTRUCTION_TAG,
        account_space=params.account_space,
        account_space_comment=params.account_space_comment,
        payload_type=params.payload_type,
        account_binding=params.account_binding,
        program_name=params.program_name,
        lamports=f"{ACCOUNT_LAMPORTS:_}",
        internal_budget=INTERNAL_BUDGET_SECONDS,
        rejections=render_rejections(params.rejections),
    )


def render_manifest(crate_name: str = HARNESS_CRATE_NAME) -> str:
    return _MANIFEST.substitute(crate_name=crate_name)


def render_lib(module_name: str) -> str:
    return _LIB.substitute(module_name=module_name)


# ---------------------------------------------------------------------------
# Harness Project
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class HarnessProject:
    spec: HarnessSpec
    module_name: str
    manifest: str
    lib_source: str
    test_source: str

    @property
    def test_file_name(self) -> str:
        return f"{self.module_name}.rs"

    def files(self) -> dict[str, str]:
        """Relative path → file text, in write order."""
        return {
            "Cargo.toml": self.manifest,
            "src/lib.rs": self.lib_source,
            f"src/{self.test_file_name}": self.test_source,
        }


def synthesize(instruction_name: str, program_name: Optional[str] = None) -> HarnessProject:
    """
    Build the harness project text for one instruction.

    Parameters
    ----------
    instruction_name : str
        Instruction to fuzz. "increment" (any case) selects the counter
        template; anything else the generic one.
    program_name : str | None
        Program library name passed to ProgramTest. Defaults per template.

    Returns
    -------
    HarnessProject
        Manifest, library entry, and test module text.
    """
    spec = resolve_harness_spec(instruction_name)
    params = build_params(spec, program_name)
    module_name = f"{params.identifier}_fuzz_test"

    return HarnessProject(
        spec=spec,
        module_name=module_name,
        manifest=render_manifest(),
        lib_source=render_lib(module_name),
        test_source=render_test_module(params),
    )
