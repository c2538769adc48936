# airodental/scripts/show_slots.py
"""
Print the free slots for today and the next two days, as the voice agent
would see them.

    python -m airodental.scripts.show_slots
"""
from datetime import date, timedelta

from airodental.config import settings
from airodental.database import SessionLocal, init_db
from airodental.exceptions import SchedulingError
from airodental.services.availability import AvailabilityService, build_window
from airodental.services.calendar_policy import build_policy
from airodental.services.repository import SqlAlchemyAppointmentRepository
from airodental.services.timeutils import to_local


def show_slots(service: AvailabilityService, d: date) -> None:
    policy = service.policy
    print(f"\n=== Slots for {d.isoformat()} | TZ={policy.tz} | POLICY={policy.name} ===")
    try:
        window = build_window(d.isoformat(), d.isoformat(), policy)
        slots = service.list_free(window)
    except SchedulingError as e:
        print("ERROR while checking availability:", e)
        return
    if not slots:
        print("No free slots.")
        return
    for s in slots:
        print(" -", to_local(s, policy.tz).strftime("%Y-%m-%d %H:%M"))


if __name__ == "__main__":
    init_db()
    db = SessionLocal()
    try:
        service = AvailabilityService(SqlAlchemyAppointmentRepository(db), build_policy(settings))
        today = date.today()
        show_slots(service, today)
        show_slots(service, today + timedelta(days=1))
        show_slots(service, today + timedelta(days=2))
    finally:
        db.close()
