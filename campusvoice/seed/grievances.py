# Seed data: sample campus grievances
#
# Coverage:
#   Categories : every category, including Other
#   Urgency    : Low, Medium, High
#   Sentiment  : Neutral, Angry, Distressed
#   Statuses   : submitted, viewed, cleared (via both edges into cleared)

from ..classifier import Classifier
from ..models import GrievanceCreate, GrievanceStatus
from ..store import GrievanceStore
from ..workflow import check_transition

GRIEVANCES = [
    {"student_name": "Ana Ferreira", "student_email": "ana.ferreira@campus.edu",
     "complaint": "The hostel room on the third floor has had no electricity since Monday and it's urgent, "
                  "I cannot charge my laptop for assignments.",
     "path": ["viewed"]},

    {"student_name": "Rohan Mehta", "student_email": "rohan.mehta@campus.edu",
     "complaint": "Food in the mess was undercooked again tonight. This is the worst week so far and "
                  "I am frustrated that nobody responds.",
     "path": []},

    {"student_name": "Li Wei", "student_email": "li.wei@campus.edu",
     "complaint": "My exam grades for the midterm have not been uploaded and the delay is affecting my "
                  "scholarship renewal.",
     "path": ["viewed", "cleared"]},

    {"student_name": "Grace Okafor", "student_email": "grace.okafor@campus.edu",
     "complaint": "The wifi in block C keeps dropping during online lectures. The problem started last week.",
     "path": ["cleared"]},

    {"student_name": "Daniel Kim", "student_email": "daniel.kim@campus.edu",
     "complaint": "There was a theft near the parking lot and I feel unsafe walking back at night. "
                  "Please act immediately.",
     "path": ["viewed"]},

    {"student_name": "Sofia Rossi", "student_email": "sofia.rossi@campus.edu",
     "complaint": "The campus clinic had no doctor on duty when I went in with a fever yesterday.",
     "path": []},

    {"student_name": "Arjun Nair", "student_email": "arjun.nair@campus.edu",
     "complaint": "Attendance for the lab session was marked absent even though I signed the sheet.",
     "path": []},

    {"student_name": "Maya Cohen", "student_email": "maya.cohen@campus.edu",
     "complaint": "The lift in the library building is not working and students with injuries cannot "
                  "reach the upper floors.",
     "path": ["viewed"]},

    {"student_name": "Tomás García", "student_email": "tomas.garcia@campus.edu",
     "complaint": "Rice served at lunch had stones in it. Annoyed that this keeps happening.",
     "path": ["cleared"]},

    {"student_name": "Hana Sato", "student_email": "hana.sato@campus.edu",
     "complaint": "I was threatened by a group of seniors and I am scared to report it in person.",
     "path": []},

    {"student_name": "Omar Haddad", "student_email": "omar.haddad@campus.edu",
     "complaint": "Parking permits for day scholars take too long to process at the admin office.",
     "path": []},

    {"student_name": "Emily Clarke", "student_email": "emily.clarke@campus.edu",
     "complaint": "The warden has not fixed the broken window in our dorm and rain is coming in. "
                  "Please fix it soon.",
     "path": ["viewed", "cleared"]},
]


async def import_grievances(store: GrievanceStore, classifier: Classifier) -> list:
    """Classify and insert all seed grievances, then walk each along its status path."""
    print("\n  Importing grievances...")
    inserted = []
    for g in GRIEVANCES:
        data = GrievanceCreate(student_name=g["student_name"], student_email=g["student_email"],
                               complaint=g["complaint"])
        analysis = await classifier.classify(data.complaint)
        record = await store.insert(data, analysis)
        for step in g["path"]:
            target = GrievanceStatus(step)
            check_transition(record.status, target)
            record = await store.update_status(record.id, record.status, target)
        inserted.append(record)
        print(f"    {record.category.value:<15} {record.urgency.value:<7} {record.status.value:<10} "
              f"{record.student_name}")
    print(f"  => {len(inserted)} grievances")
    return inserted
