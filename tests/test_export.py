import csv
import io

from review_scraper.export import convert_to_csv, result_to_csv
from review_scraper.models import ProductSummary, ReviewSite, ScrapeResult, TextReview


def test_convert_to_csv_quotes_every_value() -> None:
    records = [{"a": 1, "b": "x,y"}, {"a": 2, "b": 'he said "hi"'}]

    assert convert_to_csv(records) == 'a,b\n"1","x,y"\n"2","he said ""hi"""'


def test_convert_to_csv_of_nothing_is_empty() -> None:
    assert convert_to_csv([]) == ""


def test_first_record_keys_govern_columns() -> None:
    records = [{"name": "Jane", "stars": None}, {"stars": "4", "name": "Sam", "extra": "ignored"}, {"name": "Lee"}]

    assert convert_to_csv(records) == 'name,stars\n"Jane",""\n"Sam","4"\n"Lee",""'


def test_multiline_values_survive_a_csv_reader() -> None:
    review = TextReview(
        reviewerName="Jane, Doe",
        jobTitle="",
        reviewDate="2024-03-10",
        stars="5",
        reviewTitle='"Best" tool',
        reviewText="Line one\nLine two",
    )
    result = ScrapeResult(
        summary=ProductSummary(productName="Acme", reviewSite=ReviewSite.TRUSTPILOT, stars="4.1", totalReviews="1"),
        reviews=(review,),
    )

    rows = list(csv.reader(io.StringIO(result_to_csv(result))))

    assert rows[0] == ["reviewerName", "jobTitle", "reviewDate", "stars", "reviewTitle", "reviewText"]
    assert rows[1] == ["Jane, Doe", "", "2024-03-10", "5", '"Best" tool', "Line one\nLine two"]
