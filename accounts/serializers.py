def user_summary(user):
    if user is None:
        return None
    return {
        'id': user.pk,
        'first_name': user.first_name,
        'last_name': user.last_name,
    }


def user_detail(user):
    data = user_summary(user)
    data.update({
        'email': user.email,
        'phone': user.phone,
        'role': user.role,
        'verified': user.verified,
        'total_donations': user.total_donations,
        'donation_count': user.donation_count,
        'last_login': user.last_login,
    })
    return data
