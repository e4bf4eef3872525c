"""Deposit, withdrawal, transfer and mixed transaction commands."""

import click
from cashledger.cli.account_resolution import resolve_account_number_or_exit
from cashledger.cli.error_handling import handle_domain_error
from cashledger.domain.errors import DomainError
from cashledger.domain.locking import retry_on_conflict
from cashledger.domain.requests import (
    CashLeg,
    CheckLeg,
    CheckOutLeg,
    Decision,
    LoanChoice,
    LoanOption,
    Proposal,
    ProposalOutcome,
    TransactionRequest,
    TransferLeg,
)
from cashledger.utils.amount_parser import parse_amount
from cashledger.utils.date_parser import parse_date

DEFAULT_LOAN_DUE = "in 30 days"


def decision_options(func):
    """Options answering a proposal's decision point without prompting."""
    func = click.option(
        "--excess-to-next-loan",
        is_flag=True,
        default=False,
        help="When a loan payment exceeds the loan, apply the excess to the next open loan",
    )(func)
    func = click.option(
        "--apply-to-loan/--no-apply-to-loan",
        default=None,
        help="Route the deposit to the oldest open loan (prompts if omitted)",
    )(func)
    func = click.option("--loan-due", help=f"Due date for a shortfall loan (default: {DEFAULT_LOAN_DUE})")(func)
    func = click.option(
        "--loan",
        "loan_option",
        type=click.Choice(["shortfall", "full", "none"], case_sensitive=False),
        help="Cover a shortfall with a loan for the shortfall or the full debit (prompts if omitted)",
    )(func)
    return func


def parse_amount_or_exit(ctx: click.Context, value: str, allow_zero: bool = False):
    try:
        return parse_amount(value, allow_zero=allow_zero)
    except ValueError as e:
        click.echo(f"Error: Invalid amount format: {e}", err=True)
        ctx.exit(1)


def _decide(ctx: click.Context, proposal: Proposal, options: dict) -> Decision:
    """Turn command options and prompts into a decision for the proposal."""
    if proposal.outcome == ProposalOutcome.SHORTFALL:
        click.echo(f"Insufficient funds: short by ${proposal.shortfall:,.2f}")
        option = options.get("loan_option")
        if option is None:
            if not click.confirm("Cover the shortfall with a loan?", default=False):
                return Decision(abort=True)
            option = click.prompt(
                "Loan amount",
                type=click.Choice(["shortfall", "full"], case_sensitive=False),
                default="shortfall",
            )
        if option.lower() == "none":
            return Decision(abort=True)
        due_text = options.get("loan_due")
        if due_text is None and options.get("loan_option") is None:
            due_text = click.prompt("Loan due date", default=DEFAULT_LOAN_DUE)
        try:
            due_date = parse_date(due_text or DEFAULT_LOAN_DUE)
        except ValueError as e:
            click.echo(f"Error: Invalid date format: {e}", err=True)
            ctx.exit(1)
        return Decision(create_loan=LoanChoice(due_date=due_date, option=LoanOption(option.lower())))

    if proposal.outcome == ProposalOutcome.REPAYMENT_OFFER:
        loan = proposal.loan
        apply = options.get("apply_to_loan")
        if apply is None:
            apply = click.confirm(
                f"Account has an open loan #{loan.id} (${loan.amount:,.2f} due {loan.due_date}). "
                "Apply the deposit to it?",
                default=False,
            )
        return Decision(
            apply_credit_to_loan=apply,
            apply_excess_to_next_loan=apply and options.get("excess_to_next_loan", False),
        )

    return Decision()


def run_request(ctx: click.Context, request: TransactionRequest, options: dict) -> None:
    """Propose a request, settle its decision point, commit and print the outcome."""
    engine = ctx.obj["engine"]

    def attempt():
        proposal = engine.propose_transaction(request)
        if proposal.fee.amount > 0 and request.apply_fee:
            click.echo(f"Fee: ${proposal.fee.amount:,.2f} ({proposal.fee.memo})")
        if proposal.hold_recommended:
            click.echo("Note: this account has recent bounced checks; consider holding deposited checks")
        decision = _decide(ctx, proposal, options)
        return engine.commit_transaction(proposal.id, decision)

    try:
        result = retry_on_conflict(attempt)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if result.aborted:
        click.echo("Transaction cancelled; nothing was recorded.")
        return

    click.echo(f"Transaction {result.transaction_ref} recorded ({len(result.entry_ids)} entries)")
    if result.loan_id is not None:
        click.echo(f"  Loan #{result.loan_id} created")
    if result.repayment is not None:
        repayment = result.repayment
        click.echo(f"  Applied ${repayment.applied:,.2f} to loan #{repayment.loan.id}")
        if repayment.next_loan is not None:
            click.echo(f"  Applied ${repayment.applied_to_next:,.2f} to loan #{repayment.next_loan.id}")
    for check_id in result.held_check_ids:
        click.echo(f"  Check {check_id} placed on hold")
    if result.fee > 0:
        click.echo(f"  Fee charged: ${result.fee:,.2f}")
    click.echo(f"  New balance: ${result.new_balance:,.2f}")


@click.command("deposit")
@click.argument("account", metavar="ACCOUNT")
@click.argument("amount", metavar="AMOUNT")
@click.option("--check", "is_check", is_flag=True, help="Deposit is a check rather than cash")
@click.option("--check-number", help="Number printed on the deposited check")
@click.option("--no-account-number", is_flag=True, help="Deposited check has no account number")
@click.option("--hold", "on_hold", is_flag=True, help="Hold the check's funds until released")
@click.option("--tag", "tags", multiple=True, help="Hold tag (repeatable; implies --hold)")
@click.option("--no-fee", is_flag=True, help="Do not charge fees")
@decision_options
@click.pass_context
def deposit(ctx, account, amount, is_check, check_number, no_account_number, on_hold, tags, no_fee, **options):
    """Deposit cash or a check.

    Examples:
        cashledger deposit 1001 250.00
        cashledger deposit 1001 1200 --check --check-number 5521 --tag payroll
    """
    engine = ctx.obj["engine"]
    account_number = resolve_account_number_or_exit(ctx, engine.accounts, account)
    value = parse_amount_or_exit(ctx, amount)

    try:
        if is_check or check_number or no_account_number or on_hold or tags:
            check = CheckLeg(
                amount=value,
                check_number=check_number,
                has_account_number=not no_account_number,
                on_hold=on_hold or bool(tags),
                hold_tags=tuple(tags),
            )
            request = TransactionRequest(account_number, credit_checks=(check,), apply_fee=not no_fee)
        else:
            request = TransactionRequest(account_number, credit_cash=value, apply_fee=not no_fee)
    except DomainError as e:
        handle_domain_error(ctx, e)

    run_request(ctx, request, options)


@click.command("withdraw")
@click.argument("account", metavar="ACCOUNT")
@click.argument("amount", metavar="AMOUNT")
@click.option("--check", "is_check", is_flag=True, help="Pay out by writing a check instead of cash")
@click.option("--pay-to", help="Payee of the written check")
@click.option("--memo", help="Memo of the written check")
@click.option("--rush", is_flag=True, help="Rush processing (rush fees apply)")
@click.option("--no-fee", is_flag=True, help="Do not charge fees")
@decision_options
@click.pass_context
def withdraw(ctx, account, amount, is_check, pay_to, memo, rush, no_fee, **options):
    """Withdraw cash or write a check.

    Examples:
        cashledger withdraw 1001 60
        cashledger withdraw 1001 450 --check --pay-to "City Water" --rush
    """
    engine = ctx.obj["engine"]
    account_number = resolve_account_number_or_exit(ctx, engine.accounts, account)
    value = parse_amount_or_exit(ctx, amount)

    if is_check or pay_to or memo:
        leg = CheckOutLeg(amount=value, pay_to_order_of=pay_to, memo=memo, is_rush=rush)
        request = TransactionRequest(account_number, debit_checks=(leg,), apply_fee=not no_fee)
    else:
        request = TransactionRequest(account_number, debit_cash=(CashLeg(value, is_rush=rush),), apply_fee=not no_fee)

    run_request(ctx, request, options)


@click.command("transfer")
@click.argument("source", metavar="FROM_ACCOUNT")
@click.argument("recipient", metavar="TO_ACCOUNT")
@click.argument("amount", metavar="AMOUNT")
@click.option("--no-fee", is_flag=True, help="Do not charge fees")
@decision_options
@click.pass_context
def transfer(ctx, source, recipient, amount, no_fee, **options):
    """Move money between two accounts.

    Example:
        cashledger transfer 1001 1002 75.00
    """
    engine = ctx.obj["engine"]
    source_number = resolve_account_number_or_exit(ctx, engine.accounts, source)
    recipient_number = resolve_account_number_or_exit(ctx, engine.accounts, recipient)
    value = parse_amount_or_exit(ctx, amount)

    request = TransactionRequest(
        source_number, transfer=TransferLeg(recipient_number, value), apply_fee=not no_fee
    )
    run_request(ctx, request, options)


def leg_options(func):
    """Options describing the legs of a mixed transaction."""
    for decorator in reversed(
        [
            click.option("--cash-in", help="Cash deposited"),
            click.option("--check-in", "checks_in", multiple=True, help="Check deposited (repeatable)"),
            click.option(
                "--check-in-no-account",
                "checks_in_no_account",
                multiple=True,
                help="Deposited check without an account number (repeatable)",
            ),
            click.option("--held-check", "held_checks", multiple=True, help="Deposited check to hold (repeatable)"),
            click.option("--tag", "tags", multiple=True, help="Hold tag for held checks (repeatable)"),
            click.option("--cash-out", "cash_out", multiple=True, help="Cash withdrawn (repeatable)"),
            click.option("--check-out", "checks_out", multiple=True, help="Check written (repeatable)"),
            click.option("--pay-to", help="Payee for the written checks"),
            click.option("--rush", is_flag=True, help="Rush processing for withdrawals and written checks"),
            click.option("--transfer-to", help="Recipient account of a transfer"),
            click.option("--transfer-amount", help="Amount to transfer"),
            click.option("--no-fee", is_flag=True, help="Do not charge fees"),
        ]
    ):
        func = decorator(func)
    return func


def build_request(ctx: click.Context, account: str, legs: dict) -> TransactionRequest:
    """Build a TransactionRequest from ``leg_options`` values, exiting on bad input."""
    engine = ctx.obj["engine"]
    account_number = resolve_account_number_or_exit(ctx, engine.accounts, account)
    rush = legs["rush"]

    try:
        credit_checks = [CheckLeg(parse_amount_or_exit(ctx, a)) for a in legs["checks_in"]]
        credit_checks += [
            CheckLeg(parse_amount_or_exit(ctx, a), has_account_number=False) for a in legs["checks_in_no_account"]
        ]
        credit_checks += [
            CheckLeg(parse_amount_or_exit(ctx, a), on_hold=True, hold_tags=tuple(legs["tags"]))
            for a in legs["held_checks"]
        ]
        transfer = None
        if legs["transfer_to"] or legs["transfer_amount"]:
            if not legs["transfer_amount"]:
                click.echo("Error: --transfer-to needs --transfer-amount", err=True)
                ctx.exit(1)
            recipient = None
            if legs["transfer_to"]:
                recipient = resolve_account_number_or_exit(ctx, engine.accounts, legs["transfer_to"])
            transfer = TransferLeg(recipient, parse_amount_or_exit(ctx, legs["transfer_amount"]))

        return TransactionRequest(
            account_number,
            credit_cash=parse_amount_or_exit(ctx, legs["cash_in"], allow_zero=True) if legs["cash_in"] else 0,
            credit_checks=tuple(credit_checks),
            debit_cash=tuple(CashLeg(parse_amount_or_exit(ctx, a), is_rush=rush) for a in legs["cash_out"]),
            debit_checks=tuple(
                CheckOutLeg(parse_amount_or_exit(ctx, a), pay_to_order_of=legs["pay_to"], is_rush=rush)
                for a in legs["checks_out"]
            ),
            transfer=transfer,
            apply_fee=not legs["no_fee"],
        )
    except DomainError as e:
        handle_domain_error(ctx, e)


LEG_KEYS = (
    "cash_in",
    "checks_in",
    "checks_in_no_account",
    "held_checks",
    "tags",
    "cash_out",
    "checks_out",
    "pay_to",
    "rush",
    "transfer_to",
    "transfer_amount",
    "no_fee",
)


@click.command("transact")
@click.argument("account", metavar="ACCOUNT")
@leg_options
@decision_options
@click.pass_context
def transact(ctx, account, **params):
    """Record a mixed transaction: deposits, withdrawals, checks and a transfer.

    When the account cannot cover the transaction you are asked whether to
    lend the difference; when the account has an open loan you are asked
    whether the deposit should repay it.

    Examples:
        cashledger transact 1001 --cash-in 200 --cash-out 50 --check-out 120 --pay-to "Landlord"
        cashledger transact 1001 --held-check 900 --tag payroll --cash-out 40
    """
    legs = {key: params.pop(key) for key in LEG_KEYS}
    request = build_request(ctx, account, legs)
    run_request(ctx, request, params)


def register_commands(cli):
    """Register transaction commands with main CLI."""
    cli.add_command(deposit)
    cli.add_command(withdraw)
    cli.add_command(transfer)
    cli.add_command(transact)
