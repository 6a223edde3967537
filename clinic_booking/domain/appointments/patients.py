"""Patient resolution performed as part of booking"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Patient, Professional
from ...security_utils import mask_email
from .repository import PatientRepository

logger = logging.getLogger(__name__)


@dataclass
class PatientInfo:
    """Contact details supplied with a booking"""

    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None


def _same_name(patient: Patient, info: PatientInfo) -> bool:
    return (
        patient.first_name.strip().casefold() == info.first_name.strip().casefold()
        and patient.last_name.strip().casefold() == info.last_name.strip().casefold()
    )


class PatientResolver:
    """
    Find or create the patient record for a booking.

    Records are scoped to the professional's clinic when there is one,
    otherwise to the professional. A contact match with the same name is
    reused and its contact details refreshed. A contact match under a
    different name is treated as a possible duplicate: it is logged and a
    new record is created.
    """

    def __init__(self, db: Session):
        self.db = db

    def resolve(self, professional: Professional, info: PatientInfo, now: datetime) -> Patient:
        matches = PatientRepository.find_by_contact(
            self.db, professional.id, professional.clinic_id, info.email, info.phone
        )

        for patient in matches:
            if _same_name(patient, info):
                changed = False
                if info.email and patient.email != info.email:
                    patient.email = info.email
                    changed = True
                if info.phone and patient.phone != info.phone:
                    patient.phone = info.phone
                    changed = True
                if changed:
                    patient.updated_at = now
                    self.db.flush()
                    logger.info(f"🔄 Updated contact info for patient {patient.id}")
                return patient

        if matches:
            logger.warning(
                f"⚠️ Possible duplicate patient: contact {mask_email(info.email)} already belongs to "
                f"{len(matches)} patient(s) with a different name, creating a new record"
            )

        patient = PatientRepository.create_patient(
            self.db,
            professional_id=professional.id,
            clinic_id=professional.clinic_id,
            first_name=info.first_name.strip(),
            last_name=info.last_name.strip(),
            email=info.email,
            phone=info.phone,
            created_at=now,
            updated_at=now,
        )
        logger.info(f"✅ Created patient {patient.id} for professional {professional.id}")
        return patient
