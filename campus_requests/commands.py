import click
from flask.cli import with_appcontext
from campus_requests.extensions import db
from campus_requests.constants import Role
from campus_requests.models import User

# One demo account per role: (nic, name, role, department, index number)
DEMO_USERS = [
    ('200000000001', 'Admin User', Role.ADMIN, 'Administration', None),
    ('200000000002', 'Sam Student', Role.STUDENT, 'Computer Science', 'CS2021001'),
    ('200000000003', 'Lee Lecturer', Role.LECTURER, 'Computer Science', None),
    ('200000000004', 'Hana HOD', Role.HOD, 'Computer Science', None),
    ('200000000005', 'Dana Dean', Role.DEAN, 'Faculty of Science', None),
    ('200000000006', 'Vic Chancellor', Role.VC, 'Administration', None),
    ('200000000007', 'Sal Staff', Role.STAFF, 'Student Affairs', None),
]


@click.command('seed-users')
@click.option('--password', default='Password@123', show_default=True, help='Password for every demo account.')
@with_appcontext
def seed_users_command(password):
    """Creates the demo accounts that do not exist yet."""
    created = 0
    for nic, name, role, department, index_number in DEMO_USERS:
        if User.query.filter_by(nic=nic).first():
            continue
        user = User(nic=nic, name=name, role=role, department=department, index_number=index_number,
                    email=f"{role.lower()}@campus.example")
        user.set_password(password)
        db.session.add(user)
        created += 1
    db.session.commit()
    click.echo(f"Created {created} demo user(s).")
