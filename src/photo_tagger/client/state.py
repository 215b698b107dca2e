"""Client-side photo state and the pure reducer that updates it.

Every action is a frozen dataclass and ``reduce`` returns a new
``PhotoState``; network calls live in ``photo_tagger.client.store``.
"""

from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import StrEnum

from photo_tagger.domain.photos import Photo
from photo_tagger.domain.tags import FilterCriteria, PhotoTag, TagPatch


class SearchStatus(StrEnum):
    """What the displayed list currently reflects."""

    UNFILTERED = "unfiltered"
    OK = "ok"
    EMPTY = "empty"
    LOCAL = "local"


@dataclass(frozen=True)
class Breadcrumb:
    id: str
    name: str


@dataclass(frozen=True)
class PhotoState:
    """Photos of the current folder plus the list currently displayed."""

    photos: tuple[Photo, ...] = ()
    filtered_photos: tuple[Photo, ...] = ()
    filters: FilterCriteria = FilterCriteria()
    selected_photo_id: str | None = None
    current_folder_id: str | None = None
    breadcrumbs: tuple[Breadcrumb, ...] = ()
    search_status: SearchStatus = SearchStatus.UNFILTERED
    last_error: str | None = None

    def find_photo(self, photo_id: str) -> Photo | None:
        """Return a photo from the full list, or from search results."""
        for photo in self.photos:
            if photo.id == photo_id:
                return photo
        for photo in self.filtered_photos:
            if photo.id == photo_id:
                return photo
        return None

    @property
    def selected_photo(self) -> Photo | None:
        if self.selected_photo_id is None:
            return None
        return self.find_photo(self.selected_photo_id)


@dataclass(frozen=True)
class SetPhotos:
    photos: tuple[Photo, ...]


@dataclass(frozen=True)
class AddPhoto:
    photo: Photo


@dataclass(frozen=True)
class ReplacePhoto:
    photo: Photo


@dataclass(frozen=True)
class RemovePhoto:
    photo_id: str


@dataclass(frozen=True)
class SetFilters:
    filters: FilterCriteria


@dataclass(frozen=True)
class ClearFilters:
    pass


@dataclass(frozen=True)
class ApplyLocalFilter:
    """Filter the resident photos by their loaded tags."""


@dataclass(frozen=True)
class SetSearchResults:
    photos: tuple[Photo, ...]
    status: SearchStatus


@dataclass(frozen=True)
class SelectPhoto:
    photo_id: str | None


@dataclass(frozen=True)
class SetCurrentFolder:
    folder_id: str | None


@dataclass(frozen=True)
class SetBreadcrumbs:
    breadcrumbs: tuple[Breadcrumb, ...]


@dataclass(frozen=True)
class PushBreadcrumb:
    breadcrumb: Breadcrumb


@dataclass(frozen=True)
class NavigateToBreadcrumb:
    index: int


@dataclass(frozen=True)
class AttachTag:
    photo_id: str
    tag: PhotoTag


@dataclass(frozen=True)
class ReplaceTagId:
    photo_id: str
    old_id: str
    new_id: str


@dataclass(frozen=True)
class PatchTag:
    photo_id: str
    tag_id: str
    patch: TagPatch


@dataclass(frozen=True)
class DetachTag:
    photo_id: str
    tag_id: str


@dataclass(frozen=True)
class SetPhotoTags:
    photo_id: str
    tags: tuple[PhotoTag, ...]


@dataclass(frozen=True)
class RecordError:
    message: str | None


Action = (
    SetPhotos
    | AddPhoto
    | ReplacePhoto
    | RemovePhoto
    | SetFilters
    | ClearFilters
    | ApplyLocalFilter
    | SetSearchResults
    | SelectPhoto
    | SetCurrentFolder
    | SetBreadcrumbs
    | PushBreadcrumb
    | NavigateToBreadcrumb
    | AttachTag
    | ReplaceTagId
    | PatchTag
    | DetachTag
    | SetPhotoTags
    | RecordError
)


def reduce(state: PhotoState, action: Action) -> PhotoState:
    """Return the state that results from applying an action."""
    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise TypeError(f"Unknown action: {type(action).__name__}")
    return handler(state, action)


def local_matches(photos: tuple[Photo, ...], criteria: FilterCriteria) -> tuple[Photo, ...]:
    """Return photos with at least one loaded tag matching the criteria."""
    if criteria.is_empty():
        return photos
    return tuple(
        photo for photo in photos if any(criteria.matches(tag) for tag in photo.tags)
    )


def _map_photo(
    photos: tuple[Photo, ...], photo_id: str, update: Callable[[Photo], Photo]
) -> tuple[Photo, ...]:
    return tuple(update(photo) if photo.id == photo_id else photo for photo in photos)


def _update_tags(
    state: PhotoState,
    photo_id: str,
    update: Callable[[tuple[PhotoTag, ...]], tuple[PhotoTag, ...]],
) -> PhotoState:
    """Apply a tag-list change to the photo in both the full and displayed lists."""

    def apply(photo: Photo) -> Photo:
        return replace(photo, tags=update(photo.tags))

    return replace(
        state,
        photos=_map_photo(state.photos, photo_id, apply),
        filtered_photos=_map_photo(state.filtered_photos, photo_id, apply),
    )


def _resolvable_selection(
    selected: str | None, *lists: tuple[Photo, ...]
) -> str | None:
    """Return the selection if some list still holds it, otherwise None."""
    if selected is None:
        return None
    if any(photo.id == selected for photos in lists for photo in photos):
        return selected
    return None


def _set_photos(state: PhotoState, action: SetPhotos) -> PhotoState:
    photos = tuple(action.photos)
    return replace(
        state,
        photos=photos,
        filtered_photos=photos,
        selected_photo_id=_resolvable_selection(state.selected_photo_id, photos),
        search_status=SearchStatus.UNFILTERED,
    )


def _add_photo(state: PhotoState, action: AddPhoto) -> PhotoState:
    photos = (*state.photos, action.photo)
    return replace(state, photos=photos, filtered_photos=photos)


def _replace_photo(state: PhotoState, action: ReplacePhoto) -> PhotoState:
    photo = action.photo
    return replace(
        state,
        photos=_map_photo(state.photos, photo.id, lambda _: photo),
        filtered_photos=_map_photo(state.filtered_photos, photo.id, lambda _: photo),
    )


def _remove_photo(state: PhotoState, action: RemovePhoto) -> PhotoState:
    selected = state.selected_photo_id
    if selected == action.photo_id:
        selected = None
    return replace(
        state,
        photos=tuple(p for p in state.photos if p.id != action.photo_id),
        filtered_photos=tuple(
            p for p in state.filtered_photos if p.id != action.photo_id
        ),
        selected_photo_id=selected,
    )


def _set_filters(state: PhotoState, action: SetFilters) -> PhotoState:
    return replace(state, filters=action.filters)


def _clear_filters(state: PhotoState, _action: ClearFilters) -> PhotoState:
    return replace(
        state,
        filters=FilterCriteria(),
        filtered_photos=state.photos,
        selected_photo_id=_resolvable_selection(state.selected_photo_id, state.photos),
        search_status=SearchStatus.UNFILTERED,
    )


def _apply_local_filter(state: PhotoState, _action: ApplyLocalFilter) -> PhotoState:
    if state.filters.is_empty():
        return _clear_filters(state, ClearFilters())
    filtered = local_matches(state.photos, state.filters)
    return replace(
        state,
        filtered_photos=filtered,
        selected_photo_id=_resolvable_selection(
            state.selected_photo_id, state.photos, filtered
        ),
        search_status=SearchStatus.LOCAL,
    )


def _set_search_results(state: PhotoState, action: SetSearchResults) -> PhotoState:
    filtered = tuple(action.photos)
    return replace(
        state,
        filtered_photos=filtered,
        selected_photo_id=_resolvable_selection(
            state.selected_photo_id, state.photos, filtered
        ),
        search_status=action.status,
    )


def _select_photo(state: PhotoState, action: SelectPhoto) -> PhotoState:
    if action.photo_id is None or state.find_photo(action.photo_id) is None:
        return replace(state, selected_photo_id=None)
    return replace(state, selected_photo_id=action.photo_id)


def _set_current_folder(state: PhotoState, action: SetCurrentFolder) -> PhotoState:
    return replace(state, current_folder_id=action.folder_id)


def _set_breadcrumbs(state: PhotoState, action: SetBreadcrumbs) -> PhotoState:
    return replace(state, breadcrumbs=tuple(action.breadcrumbs))


def _push_breadcrumb(state: PhotoState, action: PushBreadcrumb) -> PhotoState:
    return replace(state, breadcrumbs=(*state.breadcrumbs, action.breadcrumb))


def _navigate_to_breadcrumb(
    state: PhotoState, action: NavigateToBreadcrumb
) -> PhotoState:
    if not 0 <= action.index < len(state.breadcrumbs):
        return state
    breadcrumbs = state.breadcrumbs[: action.index + 1]
    return replace(
        state,
        breadcrumbs=breadcrumbs,
        current_folder_id=breadcrumbs[-1].id,
        selected_photo_id=None,
    )


def _attach_tag(state: PhotoState, action: AttachTag) -> PhotoState:
    return _update_tags(state, action.photo_id, lambda tags: (action.tag, *tags))


def _replace_tag_id(state: PhotoState, action: ReplaceTagId) -> PhotoState:
    return _update_tags(
        state,
        action.photo_id,
        lambda tags: tuple(
            replace(tag, id=action.new_id) if tag.id == action.old_id else tag
            for tag in tags
        ),
    )


def _patch_tag(state: PhotoState, action: PatchTag) -> PhotoState:
    return _update_tags(
        state,
        action.photo_id,
        lambda tags: tuple(
            action.patch.apply(tag) if tag.id == action.tag_id else tag
            for tag in tags
        ),
    )


def _detach_tag(state: PhotoState, action: DetachTag) -> PhotoState:
    return _update_tags(
        state,
        action.photo_id,
        lambda tags: tuple(tag for tag in tags if tag.id != action.tag_id),
    )


def _set_photo_tags(state: PhotoState, action: SetPhotoTags) -> PhotoState:
    return _update_tags(state, action.photo_id, lambda _: tuple(action.tags))


def _record_error(state: PhotoState, action: RecordError) -> PhotoState:
    return replace(state, last_error=action.message)


_HANDLERS: dict[type, Callable[[PhotoState, Action], PhotoState]] = {
    SetPhotos: _set_photos,
    AddPhoto: _add_photo,
    ReplacePhoto: _replace_photo,
    RemovePhoto: _remove_photo,
    SetFilters: _set_filters,
    ClearFilters: _clear_filters,
    ApplyLocalFilter: _apply_local_filter,
    SetSearchResults: _set_search_results,
    SelectPhoto: _select_photo,
    SetCurrentFolder: _set_current_folder,
    SetBreadcrumbs: _set_breadcrumbs,
    PushBreadcrumb: _push_breadcrumb,
    NavigateToBreadcrumb: _navigate_to_breadcrumb,
    AttachTag: _attach_tag,
    ReplaceTagId: _replace_tag_id,
    PatchTag: _patch_tag,
    DetachTag: _detach_tag,
    SetPhotoTags: _set_photo_tags,
    RecordError: _record_error,
}
