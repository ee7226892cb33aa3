from eventflow.cli import seed_users
from eventflow.models import User


def test_seed_users_command(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=['seed-users'])
    assert result.exit_code == 0
    assert 'Created admin@eventflow.local' in result.output

    roles = {u.email: u.role for u in User.query.all()}
    assert roles == {
        'admin@eventflow.local': 'Admin',
        'sales@eventflow.local': 'Sales',
        'ops@eventflow.local': 'Ops',
        'finance@eventflow.local': 'Finance',
    }
    assert User.query.filter_by(email='ops@eventflow.local').first().check_password('password123')


def test_seed_is_idempotent(app):
    seed_users()
    assert seed_users() == []
    assert User.query.count() == 4

    result = app.test_cli_runner().invoke(args=['seed-users'])
    assert 'All default users already exist.' in result.output


def test_custom_password(app):
    seed_users(password='s3cret-pass')
    assert User.query.filter_by(email='sales@eventflow.local').first().check_password('s3cret-pass')
