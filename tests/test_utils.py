from app.utils import file_extension, image_storage_key, naive_content_type


def test_file_extension_uses_final_path_segment():
    url = "https://s4.anilist.co/file/anilistcdn/media/anime/cover_image/large/12345.jpg"
    assert file_extension(url) == "jpg"
    assert naive_content_type(file_extension(url)) == "image/jpeg"


def test_file_extension_png_maps_literally():
    assert file_extension("https://example.com/x.png") == "png"
    assert naive_content_type("png") == "image/png"


def test_file_extension_takes_last_suffix_and_ignores_query():
    assert file_extension("https://example.com/a/b/cover.large.webp?v=2") == "webp"


def test_file_extension_falls_back_without_suffix():
    assert file_extension("https://example.com/avatar") == "jpg"
    assert file_extension("no-slashes-or-dots") == "jpg"
    assert file_extension("https://example.com/trailing.") == "jpg"
    assert file_extension("") == "jpg"


def test_jpeg_variants_map_to_jpeg():
    assert naive_content_type("jpeg") == "image/jpeg"
    assert naive_content_type("jpg") == "image/jpeg"
    assert naive_content_type("gif") == "image/gif"


def test_image_storage_key():
    assert image_storage_key("anime", 21, "png") == "assets/images/anime_21.png"


def test_file_extension_preserves_case():
    assert file_extension("https://example.com/media/X.PNG") == "PNG"
    assert naive_content_type("PNG") == "image/PNG"
    assert image_storage_key("user", 3, "PNG") == "assets/images/user_3.PNG"
