# scripts/insert_initial_data.py
from src.database import SessionLocal, init_db
from src.models.directory import CommitteeSubject, StudentAssignment

init_db()
db = SessionLocal()

# Internship subjects and the committee (BCN) members managing them
committee_bindings = [
    CommitteeSubject(committee_id="BCN001", committee_name="Nguyen Van Hai", subject_id="TT2024"),
    CommitteeSubject(committee_id="BCN002", committee_name="Tran Thi Mai", subject_id="TT2024"),
    CommitteeSubject(committee_id="BCN002", committee_name="Tran Thi Mai", subject_id="KL2024"),
]
db.add_all(committee_bindings)
db.commit()

subjects = {
    "TT2024": ("Graduation internship 2024", "internship"),
    "KL2024": ("Graduation thesis 2024", "thesis"),
}

# Which faculty member (GV) supervises which student (SV)
roster = [
    ("SV0001", "Le Minh Anh", "GV001", "Pham Quoc Bao", "TT2024"),
    ("SV0002", "Hoang Thu Ha", "GV001", "Pham Quoc Bao", "TT2024"),
    ("SV0003", "Vu Duc Long", "GV002", "Do Thanh Tam", "TT2024"),
    ("SV0004", "Bui Ngoc Lan", "GV002", "Do Thanh Tam", "KL2024"),
]

for student_id, student_name, supervisor_id, supervisor_name, subject_id in roster:
    subject_title, work_type = subjects[subject_id]
    db.add(
        StudentAssignment(
            student_id=student_id,
            student_name=student_name,
            student_email=f"{student_id.lower()}@student.example.edu",
            supervisor_id=supervisor_id,
            supervisor_name=supervisor_name,
            subject_id=subject_id,
            subject_title=subject_title,
            work_type=work_type,
        )
    )
db.commit()
db.close()
