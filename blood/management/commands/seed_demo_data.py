import random
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth.models import Group, User
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone
from faker import Faker

from blood import models as blood_models
from blood.services.compatibility import BLOOD_TYPES
from donor import models as donor_models

# City centres used to scatter demo donors and hospitals.
CITIES = {
    "Bengaluru": ("Karnataka", 12.971599, 77.594566),
    "Chennai": ("Tamil Nadu", 13.082680, 80.270718),
    "Mumbai": ("Maharashtra", 19.075984, 72.877656),
    "New Delhi": ("Delhi", 28.613939, 77.209023),
}
BLOOD_TYPE_WEIGHTS = [30, 2, 28, 2, 8, 1, 27, 2]
EVENT_TYPES = ["blood_drive", "camp", "awareness"]
URGENCIES = ["low", "normal", "high", "critical"]
DEFAULT_PASSWORD = "DemoPass123!"


class Command(BaseCommand):
    help = "Generate a demo dataset with hospitals, donors, inventory, events, donations, and requests"

    def add_arguments(self, parser):
        parser.add_argument("--donors", type=int, help="Number of donors to create (default random between 60-90)")
        parser.add_argument("--hospitals", type=int, default=8, help="Number of hospitals to create. Default: 8")
        parser.add_argument("--seed", type=int, help="Random seed for deterministic runs")
        parser.add_argument("--purge", action="store_true", help="Delete existing demo records before seeding")
        parser.add_argument(
            "--ratio-unavailable",
            type=float,
            default=0.18,
            help="Fraction of donors initially marked unavailable (0.0-0.9). Default: 0.18",
        )

    def handle(self, *args, **options):
        faker = Faker("en_IN")
        if options.get("seed") is not None:
            Faker.seed(options["seed"])
            random.seed(options["seed"])

        donor_target = options.get("donors") or random.randint(60, 90)
        hospital_target = max(options.get("hospitals") or 8, 1)
        ratio_unavailable = float(options.get("ratio_unavailable") or 0.18)
        ratio_unavailable = max(0.0, min(0.9, ratio_unavailable))

        if options.get("purge"):
            self._purge_existing()

        donor_group, _ = Group.objects.get_or_create(name="DONOR")

        with transaction.atomic():
            hospitals = self._create_hospitals(hospital_target, faker)
            inventory_count = self._create_inventory(hospitals)
            donors = self._create_donors(donor_target, donor_group, faker, ratio_unavailable=ratio_unavailable)
            donation_count = self._create_donations(donors, hospitals)
            event_count = self._create_events(hospitals, faker)
            request_count = self._create_requests(donors, hospitals, faker)

        summary = (
            f"Seed complete: {len(hospitals)} hospitals, {inventory_count} inventory rows, "
            f"{len(donors)} donors, {donation_count} donations, {event_count} events, "
            f"{request_count} blood requests."
        )
        self.stdout.write(self.style.SUCCESS(summary))
        self.stdout.write(
            self.style.SUCCESS(
                "Default password for generated accounts: '" + DEFAULT_PASSWORD + "'"
            )
        )

    # ------------------------------------------------------------------
    def _purge_existing(self):
        self.stdout.write("Purging existing demo data…")
        blood_models.BloodRequest.objects.all().delete()
        blood_models.Event.objects.all().delete()
        blood_models.Hospital.objects.all().delete()

        donor_user_ids = list(donor_models.Donor.objects.exclude(user__isnull=True).values_list("user_id", flat=True))
        donor_models.Donor.objects.all().delete()
        User.objects.filter(id__in=donor_user_ids, is_staff=False).delete()
        self.stdout.write(self.style.WARNING("Existing demo records removed."))

    def _scatter(self, city, spread=0.25):
        _, lat, lon = CITIES[city]
        return (
            Decimal(str(round(lat + random.uniform(-spread, spread), 6))),
            Decimal(str(round(lon + random.uniform(-spread, spread), 6))),
        )

    def _random_username(self, prefix):
        suffix = random.randint(1000, 999999)
        username = f"{prefix}{suffix}"
        while User.objects.filter(username=username).exists():
            suffix = random.randint(1000, 999999)
            username = f"{prefix}{suffix}"
        return username

    def _create_hospitals(self, target, faker):
        hospitals = []
        for _ in range(target):
            city = random.choice(list(CITIES))
            latitude, longitude = self._scatter(city, spread=0.1)
            hospitals.append(blood_models.Hospital.objects.create(
                name=f"{faker.last_name()} {random.choice(['General', 'City', 'Memorial', 'Care'])} Hospital",
                address=faker.street_address(),
                city=city,
                state=CITIES[city][0],
                phone=faker.msisdn()[:12],
                email=faker.company_email(),
                latitude=latitude,
                longitude=longitude,
                has_blood_bank=random.random() < 0.7,
                is_verified=random.random() < 0.85,
            ))
        return hospitals

    def _create_inventory(self, hospitals):
        created = 0
        for hospital in hospitals:
            if not hospital.has_blood_bank:
                continue
            for blood_type in BLOOD_TYPES:
                blood_models.BloodInventory.objects.update_or_create(
                    hospital=hospital,
                    blood_type=blood_type,
                    defaults={
                        "units_available": random.randint(0, 60),
                        "units_reserved": random.randint(0, 5),
                    },
                )
                created += 1
        return created

    def _create_donors(self, target, donor_group, faker, *, ratio_unavailable: float = 0.18):
        donors = []
        for _ in range(target):
            first_name = faker.first_name()
            last_name = faker.last_name()
            username = self._random_username("donor_")
            user = User.objects.create_user(
                username=username,
                first_name=first_name,
                last_name=last_name,
                email=f"{username}@demo.local",
                password=DEFAULT_PASSWORD,
            )
            donor_group.user_set.add(user)

            city = random.choice(list(CITIES))
            latitude, longitude = self._scatter(city)
            is_available = random.random() >= float(ratio_unavailable)
            # Roughly one donor in ten never shares a pin.
            pinned = random.random() > 0.1
            donor = donor_models.Donor.objects.create(
                user=user,
                full_name=f"{first_name} {last_name}",
                email=user.email,
                phone=faker.msisdn()[:12],
                blood_type=random.choices(BLOOD_TYPES, weights=BLOOD_TYPE_WEIGHTS, k=1)[0],
                date_of_birth=faker.date_of_birth(minimum_age=18, maximum_age=60),
                gender=random.choice(["M", "F"]),
                address=faker.street_address(),
                city=city,
                state=CITIES[city][0],
                latitude=latitude if pinned else None,
                longitude=longitude if pinned else None,
                is_available=is_available,
                availability_updated_at=(
                    timezone.now() - timedelta(days=random.randint(0, 30), hours=random.randint(0, 23))
                    if not is_available
                    else None
                ),
            )
            donors.append(donor)
        return donors

    def _create_donations(self, donors, hospitals):
        donation_total = 0
        for donor in donors:
            for _ in range(random.randint(0, 3)):
                status = random.choices(["scheduled", "completed", "cancelled"], weights=[1, 6, 1], k=1)[0]
                donation_date = timezone.localdate() - timedelta(days=random.randint(0, 365))
                donation = donor_models.Donation.objects.create(
                    donor=donor,
                    hospital=random.choice(hospitals),
                    donation_date=donation_date,
                    units_donated=random.choice([1, 1, 1, 2]),
                    status=status,
                )
                donation_total += 1
                if status == "completed":
                    donor.record_donation(donation.donation_date)
        return donation_total

    def _create_events(self, hospitals, faker):
        events = 0
        for hospital in random.sample(hospitals, k=min(len(hospitals), 5)):
            start = timezone.localdate() + timedelta(days=random.randint(-10, 45))
            blood_models.Event.objects.create(
                hospital=hospital,
                title=f"{hospital.city} {faker.word().title()} Blood Drive",
                description=faker.sentence(nb_words=14),
                event_type=random.choice(EVENT_TYPES),
                address=hospital.address,
                city=hospital.city,
                start_date=start,
                end_date=start + timedelta(days=random.randint(0, 2)),
                organizer=faker.company(),
                is_active=start >= timezone.localdate(),
            )
            events += 1
        return events

    def _create_requests(self, donors, hospitals, faker):
        request_total = 0
        requesters = random.sample(donors, k=min(len(donors), random.randint(5, 15)))
        for requester in requesters + [None] * random.randint(5, 10):
            hospital = random.choice(hospitals)
            is_emergency = random.random() < 0.2
            blood_models.BloodRequest.objects.create(
                requester=requester,
                hospital=hospital,
                patient_name=faker.name(),
                blood_type=random.choice(BLOOD_TYPES),
                units_needed=random.randint(1, 4),
                urgency="critical" if is_emergency else random.choice(URGENCIES),
                is_emergency=is_emergency,
                status=random.choices(["pending", "fulfilled", "cancelled"], weights=[5, 4, 1], k=1)[0],
                city=hospital.city,
                contact_phone=faker.msisdn()[:12],
                notes=faker.sentence(nb_words=10),
                latitude=hospital.latitude,
                longitude=hospital.longitude,
            )
            request_total += 1
        return request_total
