"""Queries for patient records.

Plain reads and writes of the ``patients`` table; the panel applies no
rules to patient data beyond required names.
"""

import logging
from dataclasses import dataclass

import aiosqlite

from clinic_admin.common import StoreError

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)


@dataclass(frozen=True)
class PatientDetails:
    """Editable fields of a patient record."""

    first_name: str
    last_name: str
    email: str | None = None
    phone: str | None = None
    address: str | None = None


@dataclass(frozen=True)
class Patient:
    patient_id: int
    first_name: str
    last_name: str
    email: str | None
    phone: str | None
    address: str | None
    created_at: str


class PatientQueries:
    """Repository for patient records."""

    CREATE_PATIENTS_TABLE = """
        CREATE TABLE IF NOT EXISTS patients (
            patient_id INTEGER PRIMARY KEY AUTOINCREMENT,
            first_name TEXT NOT NULL,
            last_name TEXT NOT NULL,
            email TEXT,
            phone TEXT,
            address TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );
        """

    SELECT_FIELDS = (
        "patient_id, first_name, last_name, email, phone, address, created_at"
    )

    LIST_PATIENTS = f"""
        SELECT {SELECT_FIELDS} FROM patients ORDER BY created_at DESC, patient_id DESC;
        """

    GET_PATIENT = f"""
        SELECT {SELECT_FIELDS} FROM patients WHERE patient_id = ?;
        """

    ADD_PATIENT = """
        INSERT INTO patients (first_name, last_name, email, phone, address)
        VALUES (?, ?, ?, ?, ?);
        """

    UPDATE_PATIENT = """
        UPDATE patients
        SET first_name = ?, last_name = ?, email = ?, phone = ?, address = ?
        WHERE patient_id = ?;
        """

    DELETE_PATIENT = """DELETE FROM patients WHERE patient_id = ?;"""

    COUNT_PATIENTS = """SELECT COUNT(*) FROM patients;"""

    def __init__(self, connection: aiosqlite.Connection) -> None:
        self.connection = connection

    async def initialize_tables(self) -> None:
        """Create the patients table if it does not exist."""
        await self.connection.execute(PatientQueries.CREATE_PATIENTS_TABLE)
        await self.connection.commit()

    async def list_patients(self) -> list[Patient]:
        """List all patients, newest first.

        :raises StoreError: If the read fails
        """
        try:
            async with self.connection.execute(PatientQueries.LIST_PATIENTS) as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StoreError(str(e)) from e
        return [Patient(*row) for row in rows]

    async def get_patient(self, patient_id: int) -> Patient | None:
        try:
            async with self.connection.execute(
                PatientQueries.GET_PATIENT,
                (patient_id,),
            ) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StoreError(str(e)) from e
        return Patient(*row) if row else None

    async def insert(self, details: PatientDetails) -> Patient:
        """Insert a patient and return the stored record.

        :raises StoreError: If the write fails
        """
        try:
            cursor = await self.connection.execute(
                PatientQueries.ADD_PATIENT,
                (
                    details.first_name,
                    details.last_name,
                    details.email,
                    details.phone,
                    details.address,
                ),
            )
            await self.connection.commit()
        except aiosqlite.Error as e:
            await self.connection.rollback()
            LOGGER.error("Error inserting patient: %s", e)
            raise StoreError(str(e)) from e

        patient = await self.get_patient(cursor.lastrowid)
        if patient is None:
            msg = f"Inserted patient {cursor.lastrowid} could not be read back"
            raise StoreError(msg)
        return patient

    async def update(self, patient_id: int, details: PatientDetails) -> bool:
        """Overwrite the editable fields of a patient.

        :return: True if a patient was updated, False if none exists
        :raises StoreError: If the write fails
        """
        try:
            cursor = await self.connection.execute(
                PatientQueries.UPDATE_PATIENT,
                (
                    details.first_name,
                    details.last_name,
                    details.email,
                    details.phone,
                    details.address,
                    patient_id,
                ),
            )
            await self.connection.commit()
        except aiosqlite.Error as e:
            await self.connection.rollback()
            LOGGER.error("Error updating patient %s: %s", patient_id, e)
            raise StoreError(str(e)) from e
        return cursor.rowcount > 0

    async def delete(self, patient_id: int) -> bool:
        """Delete a patient.

        :return: True if a patient was deleted, False if none exists
        :raises StoreError: If the write fails
        """
        try:
            cursor = await self.connection.execute(
                PatientQueries.DELETE_PATIENT,
                (patient_id,),
            )
            await self.connection.commit()
        except aiosqlite.Error as e:
            await self.connection.rollback()
            LOGGER.error("Error deleting patient %s: %s", patient_id, e)
            raise StoreError(str(e)) from e
        return cursor.rowcount > 0

    async def count(self) -> int:
        try:
            async with self.connection.execute(PatientQueries.COUNT_PATIENTS) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StoreError(str(e)) from e
        return row[0] if row else 0
