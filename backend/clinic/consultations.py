# clinic/consultations.py
import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException
from psycopg import sql
from psycopg.rows import dict_row

from .crypto import EncryptedRecord, FieldCipher
from .models import (
    SENSITIVE_FIELDS,
    AppointmentOut,
    AppointmentStatus,
    ConsultationHistoryItem,
    ConsultationOut,
    ConsultationStatus,
    CreateConsultationIn,
    PatientConsultationHistoryOut,
    UpdateConsultationIn,
)
from .security.authz import HEALTH_PROFESSIONAL

logger = logging.getLogger(__name__)

# Appointment states a consultation can be started from
STARTABLE = (AppointmentStatus.SCHEDULED, AppointmentStatus.IN_PROGRESS)

SELECT_CONSULTATION = """
select c.id, c.appointment_id, c.status, c.professional_id,
       c.encrypted_notes, c.notes_iv,
       c.encrypted_diagnosis, c.diagnosis_iv,
       c.encrypted_treatment_plan, c.treatment_plan_iv,
       c.encrypted_attention_points, c.attention_points_iv,
       c.created_at, c.updated_at,
       a.appointment_date, a.appointment_time, a.status as appointment_status,
       a.patient_id, p.first_name as patient_name
from consultations c
join appointments a on a.id = c.appointment_id
left join patients p on p.id = a.patient_id
"""


def encrypted_column(name: str) -> str:
    return f"encrypted_{name}"


def iv_column(name: str) -> str:
    return f"{name}_iv"


def check_appointment_transition(current: AppointmentStatus, new: AppointmentStatus) -> None:
    """A completed appointment can be neither cancelled nor rescheduled."""
    if current == AppointmentStatus.COMPLETED and new == AppointmentStatus.CANCELLED:
        raise HTTPException(400, "Cannot cancel a completed appointment")
    if current == AppointmentStatus.COMPLETED and new == AppointmentStatus.SCHEDULED:
        raise HTTPException(400, "Cannot reschedule a completed appointment")


class ConsultationService:
    """
    Consultation records whose clinical fields are sealed with the
    professional's per-user key. Only the owning professional ever sees
    the clear text; everyone else gets null for those fields.
    """

    def __init__(self, pool, cipher: FieldCipher):
        self.pool = pool
        self.cipher = cipher

    # ---------- helpers ----------

    def _fetch(self, cur, consultation_id: int) -> Dict[str, Any]:
        cur.execute(SELECT_CONSULTATION + "where c.id = %s", (consultation_id,))
        row = cur.fetchone()
        if not row:
            raise HTTPException(404, f"Consultation {consultation_id} not found")
        return row

    def _set_appointment_status(self, cur, appointment_id: int,
                                current: AppointmentStatus, new: AppointmentStatus) -> None:
        check_appointment_transition(AppointmentStatus(current), new)
        cur.execute(
            "update appointments set status = %s, updated_at = now() where id = %s",
            (new.value, appointment_id),
        )

    def _sealed_columns(self, data: Dict[str, Optional[str]], user_id: int) -> Dict[str, Optional[str]]:
        cols: Dict[str, Optional[str]] = {}
        for name, value in data.items():
            record = self.cipher.encrypt(value, user_id)
            cols[encrypted_column(name)] = record.encrypted_text
            cols[iv_column(name)] = record.iv
        return cols

    def to_out(self, row: Dict[str, Any], user_id: int) -> ConsultationOut:
        """Map a joined row to the response model, decrypting only for the owner."""
        can_read = row["professional_id"] == user_id
        clear: Dict[str, Optional[str]] = {}
        for name in SENSITIVE_FIELDS:
            if not can_read:
                clear[name] = None
                continue
            stored = EncryptedRecord(row.get(encrypted_column(name)), row.get(iv_column(name)))
            result = self.cipher.decrypt(stored.encrypted_text, stored.iv, user_id)
            if not result.ok and not stored.is_empty:
                logger.warning("Consultation %s: %s unavailable for user %s", row["id"], name, user_id)
            clear[name] = result.value

        appointment = None
        if row.get("appointment_date") is not None:
            appt_time = row.get("appointment_time")
            appointment = AppointmentOut(
                id=row["appointment_id"],
                appointment_date=row["appointment_date"],
                appointment_time=str(appt_time) if appt_time is not None else None,
                status=row["appointment_status"],
                patient_id=row["patient_id"],
                patient_name=row.get("patient_name"),
            )

        return ConsultationOut(
            id=row["id"],
            appointment_id=row["appointment_id"],
            appointment=appointment,
            status=row["status"],
            professional_id=row["professional_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            **clear,
        )

    # ---------- operations ----------

    def create(self, data: CreateConsultationIn, user_id: int) -> ConsultationOut:
        with self.pool.connection() as conn, conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                "select id, status from appointments where id = %s for update",
                (data.appointment_id,),
            )
            appointment = cur.fetchone()
            if not appointment:
                raise HTTPException(404, f"Appointment {data.appointment_id} not found")

            cur.execute("select id from consultations where appointment_id = %s", (appointment["id"],))
            if cur.fetchone():
                raise HTTPException(400, "This appointment already has a consultation")

            if AppointmentStatus(appointment["status"]) not in STARTABLE:
                raise HTTPException(
                    400, "Only SCHEDULED or IN_PROGRESS appointments can start a consultation"
                )

            self._set_appointment_status(
                cur, appointment["id"], appointment["status"], AppointmentStatus.IN_PROGRESS
            )

            cols = self._sealed_columns({name: getattr(data, name) for name in SENSITIVE_FIELDS}, user_id)
            cols["appointment_id"] = appointment["id"]
            cols["status"] = (data.status or ConsultationStatus.IN_PROGRESS).value
            cols["professional_id"] = user_id

            stmt = sql.SQL("insert into consultations ({}) values ({}) returning id").format(
                sql.SQL(", ").join(sql.Identifier(c) for c in cols),
                sql.SQL(", ").join(sql.Placeholder() for _ in cols),
            )
            cur.execute(stmt, tuple(cols.values()))
            new_id = cur.fetchone()["id"]
            row = self._fetch(cur, new_id)
            conn.commit()

        logger.info("Consultation %s created by user %s", new_id, user_id)
        return self.to_out(row, user_id)

    def find_all(self, user_id: int, role: Optional[str]) -> list[ConsultationOut]:
        with self.pool.connection() as conn, conn.cursor(row_factory=dict_row) as cur:
            if role == HEALTH_PROFESSIONAL:
                cur.execute(
                    SELECT_CONSULTATION + "where c.professional_id = %s order by c.created_at desc",
                    (user_id,),
                )
            else:
                cur.execute(SELECT_CONSULTATION + "order by c.created_at desc")
            rows = cur.fetchall()
        return [self.to_out(r, user_id) for r in rows]

    def find_one(self, consultation_id: int, user_id: int, role: Optional[str]) -> ConsultationOut:
        with self.pool.connection() as conn, conn.cursor(row_factory=dict_row) as cur:
            row = self._fetch(cur, consultation_id)
        if role == HEALTH_PROFESSIONAL and row["professional_id"] != user_id:
            raise HTTPException(403, "You are not allowed to view this consultation")
        return self.to_out(row, user_id)

    def find_by_patient(self, patient_id: int, user_id: int) -> list[ConsultationOut]:
        with self.pool.connection() as conn, conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                SELECT_CONSULTATION + "where a.patient_id = %s order by c.created_at desc",
                (patient_id,),
            )
            rows = cur.fetchall()
        return [self.to_out(r, user_id) for r in rows]

    def update(self, consultation_id: int, data: UpdateConsultationIn, user_id: int) -> ConsultationOut:
        provided = data.model_fields_set
        with self.pool.connection() as conn, conn.cursor(row_factory=dict_row) as cur:
            row = self._fetch(cur, consultation_id)

            if row["professional_id"] != user_id:
                raise HTTPException(403, "Only the professional who created the consultation can update it")
            if row["status"] == ConsultationStatus.COMPLETED.value and data.status is None:
                raise HTTPException(400, "Completed consultations cannot be changed")

            cols = self._sealed_columns(
                {name: getattr(data, name) for name in SENSITIVE_FIELDS if name in provided}, user_id
            )

            if data.status is not None:
                cols["status"] = data.status.value
                if data.status == ConsultationStatus.COMPLETED:
                    self._set_appointment_status(
                        cur, row["appointment_id"], row["appointment_status"], AppointmentStatus.COMPLETED
                    )

            if cols:
                stmt = sql.SQL("update consultations set {}, updated_at = now() where id = %s").format(
                    sql.SQL(", ").join(
                        sql.SQL("{} = %s").format(sql.Identifier(c)) for c in cols
                    )
                )
                cur.execute(stmt, (*cols.values(), consultation_id))
                row = self._fetch(cur, consultation_id)
            conn.commit()

        return self.to_out(row, user_id)

    def remove(self, consultation_id: int, user_id: int) -> None:
        with self.pool.connection() as conn, conn.cursor(row_factory=dict_row) as cur:
            row = self._fetch(cur, consultation_id)

            if row["professional_id"] != user_id:
                raise HTTPException(403, "Only the professional who created the consultation can remove it")
            if row["status"] == ConsultationStatus.COMPLETED.value:
                raise HTTPException(400, "Completed consultations cannot be removed")

            self._set_appointment_status(
                cur, row["appointment_id"], row["appointment_status"], AppointmentStatus.SCHEDULED
            )
            cur.execute("delete from consultations where id = %s", (consultation_id,))
            if cur.rowcount == 0:
                raise HTTPException(404, f"Consultation {consultation_id} not found")
            conn.commit()

        logger.info("Consultation %s removed by user %s", consultation_id, user_id)

    def conclude(self, consultation_id: int, user_id: int) -> ConsultationOut:
        return self.update(
            consultation_id, UpdateConsultationIn(status=ConsultationStatus.COMPLETED), user_id
        )

    def patient_history(self, patient_id: int, user_id: int) -> PatientConsultationHistoryOut:
        consultations = self.find_by_patient(patient_id, user_id)
        if not consultations:
            raise HTTPException(404, f"No consultations found for patient {patient_id}")

        with_dates = [c for c in consultations if c.appointment is not None]
        with_dates.sort(key=lambda c: c.appointment.appointment_date)

        patient_name = "Patient"
        if with_dates and with_dates[0].appointment.patient_name:
            patient_name = with_dates[0].appointment.patient_name

        return PatientConsultationHistoryOut(
            patient_id=patient_id,
            patient_name=patient_name,
            consultation_history=[
                ConsultationHistoryItem(
                    formatted_date=c.appointment.appointment_date.strftime("%d/%m/%Y"),
                    consultation=c,
                )
                for c in with_dates
            ],
        )
