# products/management/commands/verify_stock_ledger.py

from __future__ import annotations

from django.core.management.base import BaseCommand

from branches.models import Branch
from products.services.stock_ledger import find_inconsistent_batches


class Command(BaseCommand):
    help = "Check every batch's quantity_remaining against its stock movement history."

    def add_arguments(self, parser):
        parser.add_argument(
            "--branch",
            dest="branch_code",
            help="Only check batches of the branch with this code (optional)",
        )

    def handle(self, *args, **options):
        branch = None
        code = (options.get("branch_code") or "").strip()
        if code:
            branch = Branch.objects.filter(code=code).first()
            if branch is None:
                self.stderr.write(self.style.ERROR(f"Unknown branch code: {code}"))
                raise SystemExit(1)

        self.stdout.write(self.style.MIGRATE_HEADING("Stock ledger reconciliation"))
        self.stdout.write(f"Scope: {branch if branch else 'ALL BRANCHES'}")

        problems = find_inconsistent_batches(branch=branch)

        if not problems:
            self.stdout.write(self.style.SUCCESS("[OK] Every batch matches its movement history"))
            return

        self.stderr.write(self.style.ERROR(f"[FAIL] Batches out of balance: {len(problems)}"))
        for result in problems[:50]:
            b = result.batch
            self.stderr.write(
                f"  batch={b.pk} no={b.batch_number} product={b.product.name} "
                f"recorded={result.recorded_quantity} ledger={result.ledger_quantity} "
                f"diff={result.difference:+d}"
            )
        raise SystemExit(1)
