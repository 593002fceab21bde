import pytest
from fastapi import HTTPException

from pokepals.routes.profile_routes import (
    UpdateProfileImageRequest,
    UpdateProfileRequest,
    update_profile,
    update_profile_image,
)


def test_update_profile_changes_trainer_name(db, make_user) -> None:
    user = make_user(trainer_name='Ash')

    result = update_profile(data=UpdateProfileRequest.model_validate({'trainerName': ' Red '}), current_user=user, db=db)

    assert result.trainer_name == 'Red'
    db.refresh(user)
    assert user.trainer_name == 'Red'


def test_update_profile_blank_name_clears_it(db, make_user) -> None:
    user = make_user(trainer_name='Ash')

    result = update_profile(data=UpdateProfileRequest(trainer_name='   '), current_user=user, db=db)

    assert result.trainer_name is None


def test_update_profile_image_stores_url(db, make_user) -> None:
    user = make_user()

    result = update_profile_image(
        data=UpdateProfileImageRequest.model_validate({'profileImageUrl': '/objects/' + 'a' * 32}),
        current_user=user,
        db=db,
    )

    assert result.profile_image_url == '/objects/' + 'a' * 32


@pytest.mark.parametrize('value', [None, '', '   ', 42, ['x']])
def test_update_profile_image_requires_string(db, make_user, value) -> None:
    user = make_user()

    with pytest.raises(HTTPException) as exception_info:
        update_profile_image(
            data=UpdateProfileImageRequest(profile_image_url=value),
            current_user=user,
            db=db,
        )

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'profileImageUrl is required and must be a string'
