"""Seed a demo tenant for end-to-end testing of the API.

Creates one organization with an admin, a manager and two reps, a pipeline
of opportunities at various MEDDPICC completeness levels, and a month of
pharmaceutical field data (prescriptions, calls, samples, formulary records)
so that every KPI endpoint returns non-trivial values.
"""

from __future__ import annotations

import random
from datetime import timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

DEMO_PASSWORD = "demo12345"

PILLAR_SNIPPETS = {
    "metrics": "Reduce 30-day readmissions by 12% across the network within a year",
    "economic_buyer": "CFO of the hospital group signs off formulary budget changes",
    "decision_criteria": "Outcomes data, total cost of care and supply continuity",
    "decision_process": "P&T committee review followed by CFO approval",
    "paper_process": "MSA redlines with legal, then a purchase order from procurement",
    "identify_pain": "Adverse events on the current therapy drive avoidable admissions",
    "implicate_pain": "Every readmission costs roughly $12k and hurts quality ratings",
    "champion": "Head of pharmacy is sponsoring the evaluation internally",
    "competition": "Incumbent generic is cheaper but adherence is poor",
}


class Command(BaseCommand):
    help = "Seed a demo organization with CRM pipeline and pharma field data."

    def add_arguments(self, parser):
        parser.add_argument(
            "--code",
            default="DEMO",
            help="Organization code to create or reuse (default: DEMO).",
        )
        parser.add_argument(
            "--days",
            type=int,
            default=30,
            help="How many past days to spread field activity across (default: 30).",
        )
        parser.add_argument(
            "--opportunities",
            type=int,
            default=24,
            help="How many opportunities to generate (default: 24).",
        )
        parser.add_argument(
            "--seed",
            type=int,
            default=42,
            help="Random seed for reproducible generation (default: 42).",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        from accounts.models import User
        from organizations.models import Organization, OrganizationMember, Territory

        rng = random.Random(int(options["seed"]))
        code = options["code"].upper()

        organization, created = Organization.objects.get_or_create(
            code=code,
            defaults={"name": f"{code.title()} Pharma", "industry": "Pharmaceuticals"},
        )
        if not created:
            self.stdout.write(f"Reusing organization {organization}")

        territories = [
            Territory.objects.get_or_create(organization=organization, code=t_code, defaults={"name": name})[0]
            for t_code, name in (("NE", "North East"), ("SW", "South West"))
        ]

        def _user(local_part, first_name, role):
            user, _ = User.objects.get_or_create(
                email=f"{local_part}@{code.lower()}.example",
                defaults={"first_name": first_name, "last_name": "Demo", "role": role},
            )
            user.set_password(DEMO_PASSWORD)
            user.save(update_fields=["password"])
            return user

        admin = _user("admin", "Ada", User.Role.ADMIN)
        manager = _user("manager", "Max", User.Role.MANAGER)
        reps = [_user("rep1", "Rita", User.Role.SALES), _user("rep2", "Raj", User.Role.SALES)]

        for user, boss, territory in (
            (admin, None, None),
            (manager, None, None),
            (reps[0], manager, territories[0]),
            (reps[1], manager, territories[1]),
        ):
            OrganizationMember.objects.update_or_create(
                organization=organization,
                user=user,
                defaults={"manager": boss, "territory": territory, "is_default": True},
            )

        opportunities = self._seed_pipeline(organization, reps, territories, rng, int(options["opportunities"]))
        rows = self._seed_field_data(organization, reps, territories, rng, int(options["days"]))

        from meddpicc.services import MEDDPICCScoringService

        changed = MEDDPICCScoringService(organization).recalculate_organization()

        self.stdout.write(self.style.SUCCESS(
            f"Seeded {organization}: {opportunities} opportunities ({changed} scored), "
            f"{rows} field data rows. Password for every demo user: {DEMO_PASSWORD}"
        ))

    def _seed_pipeline(self, organization, reps, territories, rng, count):
        from crm.models import Company, Opportunity
        from performance.models import SalesTarget

        today = timezone.localdate()
        companies = [
            Company.objects.get_or_create(organization=organization, name=name)[0]
            for name in ("St. Mary Health", "Northside Clinics", "Riverbend Hospital", "Lakeshore Oncology")
        ]
        fields = list(PILLAR_SNIPPETS)
        for index in range(count):
            owner = reps[index % len(reps)]
            status = rng.choice([Opportunity.Status.OPEN] * 3 + [Opportunity.Status.WON, Opportunity.Status.LOST])
            filled = rng.sample(fields, rng.randint(0, len(fields)))
            Opportunity.objects.create(
                organization=organization,
                owner=owner,
                company=rng.choice(companies),
                territory=territories[index % len(territories)],
                name=f"Formulary deal #{index + 1}",
                amount=Decimal(rng.randrange(5_000, 150_000, 500)),
                status=status,
                expected_close_date=today + timedelta(days=rng.randint(5, 90)),
                closed_on=None if status == Opportunity.Status.OPEN else today - timedelta(days=rng.randint(0, 25)),
                **{field: PILLAR_SNIPPETS[field] for field in filled},
            )

        month_start = today.replace(day=1)
        for rep in reps:
            SalesTarget.objects.get_or_create(
                organization=organization,
                user=rep,
                period_type=SalesTarget.PeriodType.MONTHLY,
                period_start=month_start,
                defaults={
                    "period_end": (month_start + timedelta(days=32)).replace(day=1) - timedelta(days=1),
                    "target_value": Decimal("250000"),
                },
            )
        return count

    def _seed_field_data(self, organization, reps, territories, rng, days):
        from bi.models import (
            CallActivity,
            FormularyAccess,
            HealthcareProvider,
            PrescriptionEvent,
            Product,
            SampleDistribution,
        )

        today = timezone.localdate()
        products = [
            Product.objects.get_or_create(
                organization=organization, code=p_code, defaults={"name": name, "therapeutic_area": area},
            )[0]
            for p_code, name, area in (
                ("CZN", "Cardiozen", "Cardiology"),
                ("OVX", "Oncovex", "Oncology"),
                ("NRV", "Neurovia", "Neurology"),
            )
        ]
        hcps = [
            HealthcareProvider.objects.create(
                organization=organization,
                npi=f"1{index:09d}",
                first_name=f"Doctor{index + 1}",
                last_name="Demo",
                specialty=rng.choice(["Cardiology", "Oncology", "Neurology", "Primary care"]),
                territory=territories[index % len(territories)],
                is_kol=index % 7 == 0,
            )
            for index in range(20)
        ]

        rows = 0
        for offset in range(days):
            day = today - timedelta(days=offset)
            for _ in range(rng.randint(3, 8)):
                hcp = rng.choice(hcps)
                PrescriptionEvent.objects.create(
                    organization=organization,
                    product=rng.choice(products),
                    hcp=hcp,
                    territory=hcp.territory,
                    prescription_date=day,
                    prescription_type=rng.choice(PrescriptionEvent.PrescriptionType.values),
                    volume=Decimal(rng.randint(1, 6)),
                    payer=rng.choice(["Medicare", "BlueShield", "Aetna"]),
                )
                rows += 1
            for rep in reps:
                hcp = rng.choice(hcps)
                CallActivity.objects.create(
                    organization=organization,
                    rep=rep,
                    hcp=hcp,
                    product=rng.choice(products),
                    territory=hcp.territory,
                    call_date=timezone.now() - timedelta(days=offset, hours=rng.randint(0, 8)),
                    outcome=rng.choice(CallActivity.Outcome.values),
                )
                if rng.random() < 0.4:
                    SampleDistribution.objects.create(
                        organization=organization,
                        rep=rep,
                        hcp=hcp,
                        product=rng.choice(products),
                        territory=hcp.territory,
                        distribution_date=day,
                        quantity=rng.randint(2, 12),
                    )
                    rows += 1
                rows += 1

        for product in products:
            for payer in ("Medicare", "BlueShield", "Aetna"):
                FormularyAccess.objects.create(
                    organization=organization,
                    payer=payer,
                    product=product,
                    coverage_level=rng.choice(FormularyAccess.CoverageLevel.values),
                    effective_date=today - timedelta(days=365),
                )
                rows += 1
        return rows
