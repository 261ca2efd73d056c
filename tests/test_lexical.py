from newsradar.dedup import normalize_title, stem, title_similarity


def test_normalize_title_strips_punctuation():
    assert normalize_title("  Son Dakika:  Ankara'da   deprem! ") == "son dakika ankarada deprem"


def test_stem_turkish_suffixes():
    assert stem("haberler") == "haber"
    assert stem("evde") == "ev"
    assert stem("ev") == "ev"
    assert stem("kitabı") == "kitab"


def test_title_similarity_matches_inflected_titles():
    score = title_similarity("Merkez Bankası faiz kararını açıkladı", "Merkez Bankası faizi sabit tuttu")
    assert 0.15 <= score < 1.0


def test_title_similarity_zero_for_unrelated_or_empty():
    assert title_similarity("Galatasaray derbiyi kazandı", "Borsa güne yükselişle başladı") == 0.0
    assert title_similarity("", "Borsa güne yükselişle başladı") == 0.0
    assert title_similarity("a b", "a b") == 0.0


def test_identical_titles_score_one():
    assert title_similarity("İstanbul'da kar yağışı", "İstanbul'da kar yağışı") == 1.0
